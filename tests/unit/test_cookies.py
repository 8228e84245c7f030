from services.auth.cookies import CookieJar, join_set_cookie, set_cookie_to_cookie_header


def test_attributes_are_dropped_and_pairs_kept_in_order():
    raw = "kf_session=abc; Path=/; Secure; HttpOnly, user_id=AB1234; Path=/"
    jar = CookieJar.from_set_cookie(raw)
    assert jar.names() == ["kf_session", "user_id"]
    assert jar.header() == "kf_session=abc; user_id=AB1234"


def test_comma_inside_expires_does_not_split_cookie():
    raw = "_cfuvid=xyz; Expires=Wed, 21 Oct 2026 07:28:00 GMT; Path=/, enctoken=tok"
    jar = CookieJar.from_set_cookie(raw)
    assert jar.get("_cfuvid") == "xyz"
    assert jar.get("enctoken") == "tok"
    assert len(jar) == 2


def test_merge_replaces_in_place_and_appends_new_names():
    first = CookieJar.from_set_cookie("a=1; Path=/, b=old")
    second = CookieJar.from_set_cookie("b=2, c=3")
    merged = first.merge(second)
    assert merged.header() == "a=1; b=2; c=3"
    # originals are untouched
    assert first.get("b") == "old"


def test_values_may_contain_equals_signs():
    jar = CookieJar.from_set_cookie("enctoken=abc/def==; Path=/")
    assert jar.get("enctoken") == "abc/def=="


def test_empty_and_malformed_input():
    jar = CookieJar.from_set_cookie("", "novalue; Path=/")
    assert not jar
    assert jar.header() == ""
    assert jar.get("missing") is None


def test_multiple_raw_values_are_combined():
    header = set_cookie_to_cookie_header("kf_session=k1; Path=/", "enctoken=e1; Secure")
    assert header == "kf_session=k1; enctoken=e1"


def test_join_set_cookie_skips_empty_batches():
    assert join_set_cookie("a=1", "", "b=2") == "a=1, b=2"


def test_equality():
    assert CookieJar([("a", "1")]) == CookieJar.from_set_cookie("a=1; Path=/")
    assert CookieJar([("a", "1")]) != CookieJar([("a", "2")])
