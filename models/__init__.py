# Models package - Import all models for Flask-SQLAlchemy

from models.car_breakdowns import CarMonthlyExpense, CarMonthlyRevenue, CarTotalExpense, CarTotalRevenue
from models.car_summaries import CarMonthlySummary, CarTotalSummary
from models.categories import ExpenseKind, RevenueKind
from models.records import ExpenseBase, Expense, Refuel, Revenue, RecordType
from models.travels import Travel, TravelStatus
from models.vehicles import Vehicle

__all__ = [
    'CarMonthlyExpense',
    'CarMonthlyRevenue',
    'CarMonthlySummary',
    'CarTotalExpense',
    'CarTotalRevenue',
    'CarTotalSummary',
    'Expense',
    'ExpenseBase',
    'ExpenseKind',
    'RecordType',
    'Refuel',
    'Revenue',
    'RevenueKind',
    'Travel',
    'TravelStatus',
    'Vehicle',
]
