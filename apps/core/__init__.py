# apps/core/__init__.py

"""
Core - users, departments, projects, module permissions and audit log
"""
