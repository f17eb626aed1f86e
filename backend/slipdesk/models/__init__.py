from .inventory import Item
from .slips import Slip, SlipLine
from .income import IncomeRecord, IncomeProduct

__all__ = [
    'Item',
    'Slip', 'SlipLine',
    'IncomeRecord', 'IncomeProduct',
]
