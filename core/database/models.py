# Database models for accounts, broker sessions and the instrument mirror
from sqlalchemy import Column, Integer, String, Float, Text, ForeignKey, Index
from .connection import Base

# All timestamps are exchange-local `YYYY-MM-DD HH:MM:SS` strings (see core.utils.time)
TIMESTAMP_LENGTH = 19


class KiteUser(Base):
    """Broker account registered with the gateway"""
    __tablename__ = "kite_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    totp_secret = Column(String(255), nullable=False)
    hash_key = Column(String(64), nullable=False)  # per-account signing key, rotated on registration
    created_at = Column(String(TIMESTAMP_LENGTH), nullable=False)
    updated_at = Column(String(TIMESTAMP_LENGTH), nullable=False)


class KiteSession(Base):
    """Insert-only history of broker sessions; the newest row is the current one"""
    __tablename__ = "kite_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(64),
        ForeignKey("kite_users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    enctoken = Column(Text)
    api_key = Column(String(64))
    access_token = Column(Text)
    kite_session = Column(Text)  # JSON snapshot of the payload handed to the caller
    login_type = Column(String(8), nullable=False)
    login_time = Column(String(TIMESTAMP_LENGTH))
    created_at = Column(String(TIMESTAMP_LENGTH), nullable=False)
    updated_at = Column(String(TIMESTAMP_LENGTH), nullable=False)

    __table_args__ = (
        Index('idx_kite_sessions_user_created', 'user_id', 'created_at'),
    )


class KiteInstrument(Base):
    """Snapshot of the broker instrument master; replaced wholesale on refresh"""
    __tablename__ = "kite_instruments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    instrument_token = Column(Integer, nullable=False)
    exchange_token = Column(Integer, nullable=False)
    tradingsymbol = Column(String(64), nullable=False)
    name = Column(String(255))
    last_price = Column(Float, default=0.0)
    expiry = Column(String(10))
    strike = Column(Float, default=0.0)
    tick_size = Column(Float)
    lot_size = Column(Integer)
    instrument_type = Column(String(16))
    segment = Column(String(32))
    exchange = Column(String(16), nullable=False)
    updated_at = Column(String(TIMESTAMP_LENGTH), nullable=False)

    __table_args__ = (
        Index('idx_kite_instruments_token', 'instrument_token'),
        Index('idx_kite_instruments_lookup', 'name', 'segment', 'expiry', 'strike'),
        Index('idx_kite_instruments_exchange_symbol', 'exchange', 'tradingsymbol'),
        Index('idx_kite_instruments_updated_at', 'updated_at'),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "instrument_token": self.instrument_token,
            "exchange_token": self.exchange_token,
            "tradingsymbol": self.tradingsymbol,
            "name": self.name,
            "last_price": self.last_price,
            "expiry": self.expiry,
            "strike": self.strike,
            "tick_size": self.tick_size,
            "lot_size": self.lot_size,
            "instrument_type": self.instrument_type,
            "segment": self.segment,
            "exchange": self.exchange,
            "updated_at": self.updated_at,
        }

