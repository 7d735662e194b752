"""
Premium analytics over stored option positions.
"""

from datetime import date
from decimal import Decimal

from robinhood_csv import CONTRACT_MULTIPLIER


def capital_at_risk(strike, contracts):
    """Notional a short option can be assigned for: strike x 100 x contracts."""
    return Decimal(strike) * CONTRACT_MULTIPLIER * contracts


def days_to_expiry(expiry, today=None):
    today = today or date.today()
    return max(0, (expiry - today).days)


def summarize_positions(positions, today=None):
    """Aggregate premium, collateral and expiry status for a list of OptionPosition rows."""
    today = today or date.today()

    if not positions:
        return {
            'position_count': 0,
            'open_positions': 0,
            'expired_positions': 0,
            'total_contracts': 0,
            'total_premium': 0,
            'open_capital_at_risk': 0,
            'premium_yield_pct': 0,
            'by_type': {},
            'by_symbol': [],
            'next_expiry': None,
            'days_to_next_expiry': None
        }

    total_premium = Decimal(0)
    total_capital = Decimal(0)
    open_capital = Decimal(0)
    total_contracts = 0
    open_count = 0
    next_expiry = None
    by_type = {}
    by_symbol = {}

    for pos in positions:
        premium = Decimal(pos.premium_total)
        capital = capital_at_risk(pos.strike_price, pos.contracts)

        total_premium += premium
        total_capital += capital
        total_contracts += pos.contracts

        if pos.expiry_date >= today:
            open_count += 1
            open_capital += capital
            if next_expiry is None or pos.expiry_date < next_expiry:
                next_expiry = pos.expiry_date

        bucket = by_type.setdefault(pos.option_type, {'positions': 0, 'premium': Decimal(0)})
        bucket['positions'] += 1
        bucket['premium'] += premium

        by_symbol[pos.symbol] = by_symbol.get(pos.symbol, Decimal(0)) + premium

    premium_yield = total_premium / total_capital * 100 if total_capital > 0 else Decimal(0)

    symbols = sorted(by_symbol.items(), key=lambda x: x[1], reverse=True)

    return {
        'position_count': len(positions),
        'open_positions': open_count,
        'expired_positions': len(positions) - open_count,
        'total_contracts': total_contracts,
        'total_premium': round(float(total_premium), 2),
        'open_capital_at_risk': round(float(open_capital), 2),
        'premium_yield_pct': round(float(premium_yield), 2),
        'by_type': {
            k: {'positions': v['positions'], 'premium': round(float(v['premium']), 2)}
            for k, v in by_type.items()
        },
        'by_symbol': [
            {'symbol': symbol, 'premium': round(float(premium), 2)}
            for symbol, premium in symbols
        ],
        'next_expiry': next_expiry.isoformat() if next_expiry else None,
        'days_to_next_expiry': days_to_expiry(next_expiry, today) if next_expiry else None
    }
