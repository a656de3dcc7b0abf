"""
StripBooth Backend — ORM Models
================================

Importing this package registers every table on `Base.metadata`
(used by Alembic autogenerate and the test suite's create_all).
"""

from stripbooth.models.design_template import DesignTemplate
from stripbooth.models.order import Order
from stripbooth.models.print_template import PrintTemplate, TemplateSequence, TemplateSlot
from stripbooth.models.project import Project
from stripbooth.models.raffle import RaffleEntry, RaffleWinner

__all__ = [
    "DesignTemplate",
    "Order",
    "PrintTemplate",
    "Project",
    "RaffleEntry",
    "RaffleWinner",
    "TemplateSequence",
    "TemplateSlot",
]
