# apps/__init__.py

"""
Orbit Workspace - Django applications

- core: users, projects, module access control, audit trail
- board: tasks, milestones, Kanban, backlog, timelines and WebSockets
- workspace: discussions, risk register, stakeholders, retrospectives
- capacity: iterations and team capacity planning
- budget: project budget, spending and alerts
- reports: project analytics and PDF / CSV / Excel exports
"""

__version__ = '1.0.0'
