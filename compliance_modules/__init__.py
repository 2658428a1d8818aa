"""
compliance_modules -- domain modules of the order compliance engine.

Each module owns its frozen dataclass models (``models.py``) and its
SQLAlchemy persistence (``orm.py``).  Modules import from the kernel only.
"""
