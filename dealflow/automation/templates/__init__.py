"""
Dealflow Workflow Templates

Pre-built workflow templates for common sales processes:
- Prospect qualification
- Deal closing
- SaaS trial conversion
- Manufacturing RFQ response
- Consulting proposals
- Bulk order processing
"""

from dealflow.automation.templates.builtin import get_builtin_templates

__all__ = [
    "get_builtin_templates",
]
