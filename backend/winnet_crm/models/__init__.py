"""
Modelos ORM
"""
from winnet_crm.models.client import Client, User
from winnet_crm.models.quote import Quote, QuoteLineItem
from winnet_crm.models.sale import Sale, Payment
from winnet_crm.models.financial import FinancialEntry
from winnet_crm.models.notification import Notification

__all__ = [
    "Client", "User",
    "Quote", "QuoteLineItem",
    "Sale", "Payment",
    "FinancialEntry",
    "Notification",
]
