# apps/budget/__init__.py

"""
Budget - project budget, categories, spending, receipts and alerts
"""
