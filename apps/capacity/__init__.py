# apps/capacity/__init__.py

"""
Capacity - iterations, teams and effective capacity planning
"""
