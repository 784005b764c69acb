"""
Dealflow Built-in Workflow Templates

Pre-built workflow templates for common sales processes.
"""

from dealflow.automation.types import (
    ActionType,
    AutomationAction,
    AutomationRule,
    ResourceType,
    RuleTrigger,
    StepType,
    WorkflowResource,
    WorkflowStep,
    WorkflowTemplate,
)


def get_builtin_templates() -> list[WorkflowTemplate]:
    """Get all built-in workflow templates."""
    return [
        prospect_qualification_template(),
        deal_closing_template(),
        saas_trial_to_paid_template(),
        manufacturing_rfq_template(),
        consulting_proposal_template(),
        bulk_order_processing_template(),
    ]


def prospect_qualification_template() -> WorkflowTemplate:
    """Qualification of a new prospect ending in a manager approval."""
    research_step = WorkflowStep(
        id="initial-research",
        name="Initial Company Research",
        description="Research company background, industry, and key contacts",
        type=StepType.MANUAL,
        assigned_role="rep",
        due_in_days=1,
        completion_criteria="Company profile completed with industry analysis",
        resources=[
            WorkflowResource(
                id="research-checklist",
                name="Company Research Checklist",
                type=ResourceType.CHECKLIST,
                content=(
                    "- Company size and revenue\n"
                    "- Key decision makers\n"
                    "- Technology stack\n"
                    "- Competitors\n"
                    "- Recent news/events"
                ),
            ),
        ],
    )

    assessment_step = WorkflowStep(
        id="meddpicc-assessment",
        name="MEDDPICC Qualification",
        description="Complete initial MEDDPICC assessment",
        type=StepType.MANUAL,
        assigned_role="rep",
        due_in_days=2,
        dependencies=["initial-research"],
        completion_criteria="All MEDDPICC fields completed with initial scores",
        resources=[
            WorkflowResource(
                id="meddpicc-template",
                name="MEDDPICC Assessment Template",
                type=ResourceType.TEMPLATE,
                content=(
                    "Metrics: {opportunity.value}\n"
                    "Economic Buyer: TBD\n"
                    "Decision Criteria: TBD\n"
                    "Decision Process: TBD\n"
                    "Paper Process: TBD\n"
                    "Implicate Pain: TBD\n"
                    "Champion: TBD"
                ),
            ),
        ],
    )

    approval_step = WorkflowStep(
        id="approval-to-engage",
        name="Manager Approval to Engage",
        description="Get manager approval to move to engage stage",
        type=StepType.APPROVAL,
        assigned_role="manager",
        due_in_days=1,
        dependencies=["meddpicc-assessment"],
        completion_criteria="Manager approves opportunity progression",
    )

    return WorkflowTemplate(
        id="prospect-qualification",
        name="Prospect Qualification Workflow",
        description="Complete qualification process for new prospects",
        stage="prospect",
        steps=[research_step, assessment_step, approval_step],
        automation_rules=[
            AutomationRule(
                id="stage-progression",
                trigger=RuleTrigger.ALL_STEPS_COMPLETED.value,
                conditions=["approval_received"],
                actions=[
                    AutomationAction(
                        type=ActionType.FIELD_UPDATE,
                        parameters={"field": "stage", "value": "engage"},
                    ),
                    AutomationAction(
                        type=ActionType.NOTIFICATION,
                        parameters={
                            "message": "Opportunity {opportunity.title} moved to Engage stage",
                            "recipients": ["rep", "manager"],
                        },
                    ),
                ],
            ),
        ],
    )


def deal_closing_template() -> WorkflowTemplate:
    """Proposal, legal review and contract generation; contract goes out for signature."""
    return WorkflowTemplate(
        id="deal-closing",
        name="Deal Closing Workflow",
        description="Standard process for closing deals in acquire stage",
        stage="acquire",
        steps=[
            WorkflowStep(
                id="proposal-creation",
                name="Create Proposal",
                description="Generate and customize proposal document",
                type=StepType.MANUAL,
                assigned_role="rep",
                due_in_days=3,
                completion_criteria="Proposal document created and reviewed",
                resources=[
                    WorkflowResource(
                        id="proposal-template",
                        name="Standard Proposal Template",
                        type=ResourceType.DOCUMENT,
                        sharepoint_path="/templates/proposals/standard-proposal.docx",
                    ),
                ],
            ),
            WorkflowStep(
                id="legal-review",
                name="Legal Review",
                description="Legal team review of proposal terms",
                type=StepType.APPROVAL,
                assigned_role="legal",
                due_in_days=2,
                dependencies=["proposal-creation"],
                completion_criteria="Legal approval received",
            ),
            WorkflowStep(
                id="contract-generation",
                name="Generate Contract",
                description="Create final contract based on approved proposal",
                type=StepType.AUTOMATED,
                due_in_days=1,
                dependencies=["legal-review"],
                completion_criteria="Contract generated and ready for signature",
                resources=[
                    WorkflowResource(
                        id="contract-automation",
                        name="Contract Generation",
                        type=ResourceType.TEMPLATE,
                        content="Contract for {opportunity.title} - Value: ${opportunity.value}",
                    ),
                ],
            ),
        ],
        automation_rules=[
            AutomationRule(
                id="contract-ready",
                trigger=RuleTrigger.STEP_COMPLETED.value,
                conditions=["step_id:contract-generation"],
                actions=[
                    AutomationAction(
                        type=ActionType.INTEGRATION,
                        parameters={
                            "service": "docusign",
                            "action": "send_for_signature",
                            "document": "contract",
                        },
                    ),
                ],
            ),
        ],
    )


def saas_trial_to_paid_template() -> WorkflowTemplate:
    """
    SaaS trial conversion.

    The ``usage_threshold`` rule is raised by the host application through
    ``WorkflowEngine.fire_event`` when trial usage drops.
    """
    return WorkflowTemplate(
        id="saas-trial-to-paid",
        name="SaaS Trial to Paid Conversion",
        description="Convert trial users to paid subscriptions through structured engagement",
        stage="acquire",
        steps=[
            WorkflowStep(
                id="trial-onboarding",
                name="Send Trial Welcome Kit",
                description="Automated welcome email with onboarding materials",
                type=StepType.AUTOMATED,
                due_in_days=0,
                completion_criteria="Welcome email sent with tracking confirmation",
                resources=[
                    WorkflowResource(
                        id="welcome-template",
                        name="Trial Welcome Email Template",
                        type=ResourceType.TEMPLATE,
                        content="Welcome to your {opportunity.title} trial! Here are your next steps...",
                    ),
                ],
            ),
            WorkflowStep(
                id="usage-monitoring",
                name="Monitor Trial Usage",
                description="Track user engagement and feature adoption",
                type=StepType.AUTOMATED,
                due_in_days=3,
                dependencies=["trial-onboarding"],
                completion_criteria="Usage analytics collected and analyzed",
            ),
            WorkflowStep(
                id="mid-trial-check",
                name="Mid-Trial Check-in Call",
                description="Schedule call to address questions and demonstrate value",
                type=StepType.MANUAL,
                assigned_role="rep",
                due_in_days=7,
                dependencies=["usage-monitoring"],
                completion_criteria="Check-in call completed with documented outcomes",
            ),
            WorkflowStep(
                id="conversion-offer",
                name="Generate Conversion Proposal",
                description="Create customized proposal based on trial usage",
                type=StepType.AUTOMATED,
                due_in_days=12,
                dependencies=["mid-trial-check"],
                completion_criteria="Personalized proposal generated and sent",
            ),
        ],
        automation_rules=[
            AutomationRule(
                id="low-usage-alert",
                trigger="usage_threshold",
                actions=[
                    AutomationAction(
                        type=ActionType.NOTIFICATION,
                        parameters={
                            "message": "Trial user showing low engagement - intervention needed",
                            "priority": "high",
                        },
                    ),
                    AutomationAction(
                        type=ActionType.TASK,
                        parameters={
                            "title": "Reach out to low-engagement trial user",
                            "assignee": "rep",
                        },
                    ),
                ],
            ),
        ],
    )


def manufacturing_rfq_template() -> WorkflowTemplate:
    """Request-for-quote response with a management pricing approval."""
    return WorkflowTemplate(
        id="manufacturing-rfq",
        name="Manufacturing RFQ Response Process",
        description="Systematic response to Request for Quote in manufacturing",
        stage="engage",
        steps=[
            WorkflowStep(
                id="rfq-analysis",
                name="Analyze RFQ Requirements",
                description="Review technical specifications and requirements",
                type=StepType.MANUAL,
                assigned_role="engineer",
                due_in_days=1,
                completion_criteria="Technical analysis completed with feasibility assessment",
                resources=[
                    WorkflowResource(
                        id="rfq-checklist",
                        name="RFQ Analysis Checklist",
                        type=ResourceType.CHECKLIST,
                        content=(
                            "- Material specifications\n"
                            "- Quantity requirements\n"
                            "- Delivery timeline\n"
                            "- Quality standards\n"
                            "- Special requirements"
                        ),
                    ),
                ],
            ),
            WorkflowStep(
                id="cost-estimation",
                name="Generate Cost Estimate",
                description="Calculate material, labor, and overhead costs",
                type=StepType.MANUAL,
                assigned_role="estimator",
                due_in_days=2,
                dependencies=["rfq-analysis"],
                completion_criteria="Detailed cost breakdown completed with margins",
            ),
            WorkflowStep(
                id="quote-approval",
                name="Quote Approval Process",
                description="Management approval for pricing and terms",
                type=StepType.APPROVAL,
                assigned_role="manager",
                due_in_days=1,
                dependencies=["cost-estimation"],
                completion_criteria="Quote approved by management",
            ),
            WorkflowStep(
                id="quote-generation",
                name="Generate Formal Quote",
                description="Create and send formal quotation document",
                type=StepType.AUTOMATED,
                due_in_days=1,
                dependencies=["quote-approval"],
                completion_criteria="Quote document generated and delivered to customer",
            ),
        ],
        automation_rules=[
            AutomationRule(
                id="quote-follow-up",
                trigger="time_elapsed",
                actions=[
                    AutomationAction(
                        type=ActionType.TASK,
                        parameters={
                            "title": "Follow up on outstanding quote",
                            "assignee": "rep",
                        },
                    ),
                ],
            ),
        ],
    )


def consulting_proposal_template() -> WorkflowTemplate:
    """Professional services proposal from discovery to internal review."""
    return WorkflowTemplate(
        id="consulting-proposal",
        name="Consulting Services Proposal Process",
        description="Professional services proposal development and delivery",
        stage="engage",
        steps=[
            WorkflowStep(
                id="discovery-session",
                name="Client Discovery Session",
                description="Conduct detailed requirements gathering session",
                type=StepType.MANUAL,
                assigned_role="consultant",
                due_in_days=3,
                completion_criteria="Discovery session completed with documented requirements",
                resources=[
                    WorkflowResource(
                        id="discovery-template",
                        name="Discovery Session Template",
                        type=ResourceType.DOCUMENT,
                        content="Structured questionnaire for client requirements gathering",
                    ),
                ],
            ),
            WorkflowStep(
                id="solution-design",
                name="Design Solution Architecture",
                description="Develop tailored solution based on discovery findings",
                type=StepType.MANUAL,
                assigned_role="lead-consultant",
                due_in_days=5,
                dependencies=["discovery-session"],
                completion_criteria="Solution architecture document completed",
            ),
            WorkflowStep(
                id="resource-planning",
                name="Resource and Timeline Planning",
                description="Plan team resources and project timeline",
                type=StepType.MANUAL,
                assigned_role="project-manager",
                due_in_days=2,
                dependencies=["solution-design"],
                completion_criteria="Resource plan and timeline finalized",
            ),
            WorkflowStep(
                id="proposal-creation",
                name="Create Comprehensive Proposal",
                description="Generate detailed proposal with SOW and pricing",
                type=StepType.MANUAL,
                assigned_role="proposal-writer",
                due_in_days=3,
                dependencies=["resource-planning"],
                completion_criteria="Professional proposal document completed",
            ),
            WorkflowStep(
                id="proposal-review",
                name="Internal Proposal Review",
                description="Quality review and approval of proposal",
                type=StepType.APPROVAL,
                assigned_role="practice-lead",
                due_in_days=1,
                dependencies=["proposal-creation"],
                completion_criteria="Proposal reviewed and approved for delivery",
            ),
        ],
        automation_rules=[
            AutomationRule(
                id="proposal-delivery",
                trigger=RuleTrigger.STEP_COMPLETED.value,
                conditions=["step_id:proposal-review"],
                actions=[
                    AutomationAction(
                        type=ActionType.NOTIFICATION,
                        parameters={
                            "message": "Proposal for {opportunity.title} approved for delivery",
                            "recipients": ["client"],
                        },
                    ),
                    AutomationAction(
                        type=ActionType.TASK,
                        parameters={
                            "title": "Schedule proposal presentation",
                            "assignee": "rep",
                        },
                    ),
                ],
            ),
        ],
    )


def bulk_order_processing_template() -> WorkflowTemplate:
    """Large-volume orders with volume pricing and a credit check."""
    return WorkflowTemplate(
        id="bulk-order-processing",
        name="Bulk Order Processing Workflow",
        description="Handle large volume orders with special pricing and terms",
        stage="acquire",
        steps=[
            WorkflowStep(
                id="order-verification",
                name="Verify Order Details",
                description="Validate quantities, pricing, and delivery requirements",
                type=StepType.MANUAL,
                assigned_role="order-specialist",
                due_in_days=1,
                completion_criteria="Order details verified and documented",
            ),
            WorkflowStep(
                id="inventory-check",
                name="Inventory Availability Check",
                description="Confirm product availability and lead times",
                type=StepType.AUTOMATED,
                due_in_days=0,
                dependencies=["order-verification"],
                completion_criteria="Inventory status confirmed for all items",
            ),
            WorkflowStep(
                id="special-pricing",
                name="Apply Volume Pricing",
                description="Calculate and apply bulk pricing discounts",
                type=StepType.AUTOMATED,
                due_in_days=0,
                dependencies=["inventory-check"],
                completion_criteria="Volume pricing applied and calculations verified",
            ),
            WorkflowStep(
                id="credit-check",
                name="Customer Credit Verification",
                description="Verify customer credit for large order amount",
                type=StepType.AUTOMATED,
                due_in_days=1,
                dependencies=["special-pricing"],
                completion_criteria="Credit check completed with approval/conditions",
            ),
            WorkflowStep(
                id="final-approval",
                name="Management Approval",
                description="Final approval for large order with special terms",
                type=StepType.APPROVAL,
                assigned_role="sales-manager",
                due_in_days=1,
                dependencies=["credit-check"],
                completion_criteria="Management approval obtained",
            ),
        ],
        automation_rules=[
            AutomationRule(
                id="expedite-large-orders",
                trigger=RuleTrigger.STEP_COMPLETED.value,
                conditions=["step_id:order-verification", "value_above:50000"],
                actions=[
                    AutomationAction(
                        type=ActionType.NOTIFICATION,
                        parameters={
                            "message": "Large order detected - expediting approval process",
                            "recipients": ["sales-manager", "order-specialist"],
                        },
                    ),
                ],
            ),
        ],
    )
