# apps/reports/__init__.py

"""
Reports - project overview analytics and PDF / CSV / Excel exports
"""
