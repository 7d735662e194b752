"""
Database models for the Options Portfolio Tracker.
Includes OptionPosition and OptionTransaction models.
"""

from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Scale matches robinhood_csv.MONEY_SCALE so accepted values are never rounded
MONEY = db.Numeric(30, 6)


def _decimal(value):
    return float(value) if value is not None else None


class OptionPosition(db.Model):
    """One opened (sold) option contract lot."""
    __tablename__ = 'option_positions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(255), nullable=False, index=True)
    symbol = db.Column(db.Text, nullable=False, index=True)
    option_type = db.Column(db.String(4), nullable=False)  # CALL | PUT
    strike_price = db.Column(MONEY, nullable=False)
    expiry_date = db.Column(db.Date, nullable=False, index=True)
    open_date = db.Column(db.Date, nullable=False)
    open_price = db.Column(MONEY, nullable=False)
    contracts = db.Column(db.Integer, nullable=False)
    premium_total = db.Column(MONEY, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    transactions = db.relationship(
        'OptionTransaction', backref='position', lazy=True,
        cascade='all, delete-orphan', order_by='OptionTransaction.id'
    )

    def to_dict(self, include_transactions=False):
        """Convert position to dictionary."""
        data = {
            'id': self.id,
            'symbol': self.symbol,
            'option_type': self.option_type,
            'strike_price': _decimal(self.strike_price),
            'expiry_date': self.expiry_date.isoformat() if self.expiry_date else None,
            'open_date': self.open_date.isoformat() if self.open_date else None,
            'open_price': _decimal(self.open_price),
            'contracts': self.contracts,
            'premium_total': _decimal(self.premium_total),
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if include_transactions:
            data['transactions'] = [t.to_dict() for t in self.transactions]
        return data


class OptionTransaction(db.Model):
    """Cash-flow record linked to the position it opened or closed."""
    __tablename__ = 'option_transactions'

    id = db.Column(db.Integer, primary_key=True)
    position_id = db.Column(
        db.Integer, db.ForeignKey('option_positions.id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    action = db.Column(db.String(10), nullable=False)
    trade_date = db.Column(db.Date, nullable=False)
    price_per_share = db.Column(MONEY, nullable=False)
    total_cash = db.Column(MONEY, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        """Convert transaction to dictionary."""
        return {
            'id': self.id,
            'position_id': self.position_id,
            'action': self.action,
            'trade_date': self.trade_date.isoformat() if self.trade_date else None,
            'price_per_share': _decimal(self.price_per_share),
            'total_cash': _decimal(self.total_cash),
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
