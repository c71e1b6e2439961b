# apps/board/__init__.py

"""
Board - tasks, milestones, Kanban, backlog and timeline views
"""
