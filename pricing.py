"""
Night count and price arithmetic for the booking flow.

All amounts are Decimal; rounding happens only in format_amount().
"""
import math
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass

TAX_RATE = Decimal('0.12')
SECONDS_PER_DAY = 24 * 60 * 60
CENT = Decimal('0.01')


def to_decimal(value):
    """Convert a price-like value to Decimal without float drift"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def parse_date(value):
    """
    Accept a date, a datetime or an ISO 'YYYY-MM-DD' string.

    Datetimes with an offset come back as naive UTC so any two results can be
    subtracted.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise TypeError(f'Expected a date or an ISO date string, got {type(value).__name__}')
    try:
        return datetime.strptime(value.strip(), '%Y-%m-%d').date()
    except ValueError:
        return _naive_utc(datetime.fromisoformat(value.strip()))


def _naive_utc(value):
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def calculate_nights(check_in, check_out):
    """
    Whole nights between two dates, rounded up.

    Returns 0 when either date is missing or check-out is not after check-in;
    callers treat 0 as an incomplete selection.
    """
    start = parse_date(check_in)
    end = parse_date(check_out)
    if start is None or end is None:
        return 0

    # Compare like with like
    if isinstance(start, datetime) != isinstance(end, datetime):
        start = start if isinstance(start, datetime) else datetime.combine(start, datetime.min.time())
        end = end if isinstance(end, datetime) else datetime.combine(end, datetime.min.time())

    seconds = (end - start).total_seconds()
    return max(0, math.ceil(seconds / SECONDS_PER_DAY))


@dataclass(frozen=True)
class PriceQuote:
    nightly_price: Decimal
    nights: int
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal = TAX_RATE

    @property
    def is_complete(self):
        return self.nights > 0

    def to_dict(self):
        return {
            'nightly_price': str(self.nightly_price),
            'nights': self.nights,
            'subtotal': str(self.subtotal),
            'tax': str(self.tax),
            'tax_rate': str(self.tax_rate),
            'total': str(self.total),
        }


def quote_stay(nightly_price, check_in, check_out, tax_rate=TAX_RATE):
    """Subtotal, tax and total for a stay"""
    price = to_decimal(nightly_price)
    rate = to_decimal(tax_rate)
    if not price.is_finite():
        raise ValueError('Invalid price')
    if not rate.is_finite():
        raise ValueError('Invalid tax rate')
    if price < 0:
        raise ValueError('Nightly price cannot be negative')
    if rate < 0:
        raise ValueError('Tax rate cannot be negative')

    nights = calculate_nights(check_in, check_out)
    subtotal = price * nights
    tax = subtotal * rate

    return PriceQuote(
        nightly_price=price,
        nights=nights,
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
        tax_rate=rate,
    )


def format_amount(amount, symbol='₹'):
    """Display rounding: two places, half-up, with thousands separators"""
    rounded = to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return f'{symbol}{rounded:,.2f}'


def quote_display(quote, symbol='₹'):
    """Quote amounts plus their display strings"""
    data = quote.to_dict()
    data['display'] = {
        'nightly_price': format_amount(quote.nightly_price, symbol),
        'subtotal': format_amount(quote.subtotal, symbol),
        'tax': format_amount(quote.tax, symbol),
        'total': format_amount(quote.total, symbol),
    }
    return data
