"""
Winnet CRM - motor comercial (orçamentos, vendas e financeiro)
"""
__version__ = "0.1.0"
