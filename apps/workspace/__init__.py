# apps/workspace/__init__.py

"""
Workspace - discussions, risk register, stakeholders and retrospectives
"""
