"""Read-only query selectors."""

from declaration_kernel.selectors.base import BaseSelector
from declaration_kernel.selectors.declaration_selector import DeclarationSelector
from declaration_kernel.selectors.weight_ticket_selector import WeightTicketSelector

__all__ = ["BaseSelector", "DeclarationSelector", "WeightTicketSelector"]
