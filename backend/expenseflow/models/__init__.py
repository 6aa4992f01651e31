from expenseflow.models.user import User
from expenseflow.models.project import Project, ProjectRevision, ProjectStatus
from expenseflow.models.category import ExpenseCategory
from expenseflow.models.reimbursement import Reimbursement, ReimbursementStatus
from expenseflow.models.direct_expense import DirectExpenseRequest, DirectExpenseStatus
from expenseflow.models.expense import Expense, ExpenseSourceType
from expenseflow.models.audit import AuditLog

__all__ = [
    "User",
    "Project", "ProjectRevision", "ProjectStatus",
    "ExpenseCategory",
    "Reimbursement", "ReimbursementStatus",
    "DirectExpenseRequest", "DirectExpenseStatus",
    "Expense", "ExpenseSourceType",
    "AuditLog",
]
