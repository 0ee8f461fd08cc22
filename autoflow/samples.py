"""
Sample workflows.

Reference prompts with hand-written plans, plus reusable templates. They
document what good plans look like and double as fixtures: every plan
here validates against the default registry.
"""

from __future__ import annotations

from dataclasses import dataclass

from autoflow.actions import DEFAULT_REGISTRY
from autoflow.workflow.plan import Plan, validate_plan


@dataclass(frozen=True)
class SampleWorkflow:
    name: str
    prompt: str
    workflow: dict

    def plan(self) -> Plan:
        return validate_plan(self.workflow, DEFAULT_REGISTRY.names)

    def to_dict(self) -> dict:
        return {"name": self.name, "prompt": self.prompt, "workflow": self.workflow}


def _step(step: int, action: str, description: str, **params) -> dict:
    return {"step": step, "action": action, "params": params, "description": description}


SAMPLE_WORKFLOWS: dict[str, SampleWorkflow] = {
    sample.name: sample
    for sample in (
        SampleWorkflow(
            name="social_media",
            prompt="Create engaging social media posts about AI automation with relevant hashtags",
            workflow={
                "workflow": [
                    _step(1, "analyze_input", "Analyze the social media content requirements",
                          input_type="text", analysis_depth="basic", focus="content_requirements"),
                    _step(2, "generate_content", "Generate multiple social media posts with hashtags",
                          content_type="social_posts", platform="multi", tone="engaging",
                          count=3, include_hashtags=True),
                    _step(3, "format_output", "Format posts for different platforms",
                          format="structured", include_metadata=True, platform_specific=True),
                    _step(4, "send_output", "Deliver formatted social media content",
                          delivery_method="structured_response", include_tips=True),
                ],
                "estimated_time": 20,
                "complexity": "medium",
            },
        ),
        SampleWorkflow(
            name="document_analysis",
            prompt="Summarize a technical document and generate actionable insights",
            workflow={
                "workflow": [
                    _step(1, "analyze_input", "Analyze the technical document structure and content",
                          input_type="document", analysis_depth="comprehensive", focus="technical_content"),
                    _step(2, "extract_data", "Extract key technical information and categorize",
                          extraction_type="key_points", include_technical_details=True, categorize=True),
                    _step(3, "summarize_content", "Create executive summary with insights",
                          summary_type="executive", length="medium", include_insights=True),
                    _step(4, "generate_content", "Generate prioritized action items",
                          content_type="action_items", priority_levels=True, timeline_suggestions=True),
                    _step(5, "format_output", "Format as professional analysis report",
                          format="report", sections=["summary", "insights", "actions"], professional=True),
                    _step(6, "send_output", "Deliver complete analysis report",
                          delivery_method="comprehensive_report", include_appendix=True),
                ],
                "estimated_time": 45,
                "complexity": "high",
            },
        ),
        SampleWorkflow(
            name="resume_review",
            prompt="Analyze a resume and provide constructive feedback for improvement",
            workflow={
                "workflow": [
                    _step(1, "analyze_input", "Analyze resume structure, content, and formatting",
                          input_type="resume", analysis_depth="detailed", focus="structure_and_content"),
                    _step(2, "validate_data", "Validate against industry standards and best practices",
                          validation_type="completeness", check_formatting=True, industry_standards=True),
                    _step(3, "generate_content", "Generate detailed constructive feedback",
                          content_type="feedback", feedback_style="constructive", include_examples=True),
                    _step(4, "format_output", "Format feedback in actionable structure",
                          format="structured", sections=["strengths", "improvements", "suggestions"]),
                    _step(5, "send_output", "Deliver comprehensive resume review",
                          delivery_method="detailed_review", include_score=True),
                ],
                "estimated_time": 30,
                "complexity": "medium",
            },
        ),
        SampleWorkflow(
            name="content_planning",
            prompt="Create a week-long content calendar for a tech startup",
            workflow={
                "workflow": [
                    _step(1, "analyze_input", "Analyze tech startup context and target audience",
                          input_type="business_context", analysis_depth="strategic", focus="target_audience"),
                    _step(2, "generate_content", "Generate diverse content ideas for the week",
                          content_type="calendar", duration="7_days", platform_specific=True),
                    _step(3, "format_output", "Format as content calendar",
                          format="structured", include_timing=True),
                    _step(4, "send_output", "Deliver formatted content calendar",
                          delivery_method="calendar_format", include_templates=True),
                ],
                "estimated_time": 25,
                "complexity": "medium",
            },
        ),
        SampleWorkflow(
            name="email_draft",
            prompt="Draft a professional email response to a client inquiry",
            workflow={
                "workflow": [
                    _step(1, "analyze_input", "Analyze client inquiry and determine response requirements",
                          input_type="email_context", analysis_depth="basic", focus="tone_and_requirements"),
                    _step(2, "generate_content", "Generate professional email response",
                          content_type="email", tone="professional", length="concise"),
                    _step(3, "format_output", "Format as professional email template",
                          format="email_template", include_subject=True),
                    _step(4, "send_output", "Deliver formatted email template",
                          delivery_method="email_template", include_tips=True),
                ],
                "estimated_time": 15,
                "complexity": "low",
            },
        ),
        SampleWorkflow(
            name="code_review",
            prompt="Review code and provide improvement suggestions",
            workflow={
                "workflow": [
                    _step(1, "analyze_input", "Analyze code structure and quality",
                          input_type="code", analysis_depth="comprehensive", focus="quality_and_performance"),
                    _step(2, "validate_data", "Validate against coding standards and best practices",
                          validation_type="code_standards", check_security=True, check_performance=True),
                    _step(3, "generate_content", "Generate detailed code review feedback",
                          content_type="code_feedback", include_examples=True),
                    _step(4, "format_output", "Format as structured code review report",
                          format="report", sections=["issues", "suggestions", "best_practices"]),
                    _step(5, "send_output", "Deliver comprehensive code review",
                          delivery_method="detailed_report", include_priority=True),
                ],
                "estimated_time": 35,
                "complexity": "high",
            },
        ),
        SampleWorkflow(
            name="send_email",
            prompt="Send an email to team@example.com with subject 'Weekly update' and message 'All tasks are on track'",
            workflow={
                "workflow": [
                    _step(1, "analyze_input", "Analyze the email request and extract details",
                          input_type="email_request", analysis_depth="detailed"),
                    _step(2, "collect_credentials", "Collect Gmail credentials",
                          service_type="email", provider="gmail", credential_type="oauth"),
                    _step(3, "execute_action", "Send the email via Gmail",
                          action_type="send_email", service_provider="gmail",
                          action_data={"to": "team@example.com", "subject": "Weekly update",
                                       "body": "All tasks are on track"}),
                    _step(4, "send_output", "Confirm the email was sent",
                          delivery_method="direct", format="confirmation"),
                ],
                "estimated_time": 45,
                "complexity": "medium",
            },
        ),
    )
}


WORKFLOW_TEMPLATES: dict[str, dict] = {
    "simple": {
        "workflow": [
            _step(1, "analyze_input", "Analyze user request", input_type="text", analysis_depth="basic"),
            _step(2, "generate_content", "Generate appropriate response", content_type="response"),
            _step(3, "send_output", "Deliver results to user", delivery_method="direct"),
        ],
        "estimated_time": 10,
        "complexity": "low",
    },
    "comprehensive": {
        "workflow": [
            _step(1, "analyze_input", "Comprehensive input analysis",
                  input_type="complex", analysis_depth="comprehensive"),
            _step(2, "extract_data", "Extract relevant data and information", extraction_type="detailed"),
            _step(3, "generate_content", "Generate detailed content", content_type="detailed_response"),
            _step(4, "validate_data", "Validate content quality", validation_type="quality_check"),
            _step(5, "format_output", "Format for professional presentation", format="report"),
            _step(6, "send_output", "Deliver complete results", delivery_method="comprehensive"),
        ],
        "estimated_time": 60,
        "complexity": "high",
    },
}


def get_sample(name: str) -> SampleWorkflow:
    """
    Look up a sample by name.

    Raises:
        KeyError: If no sample has this name
    """
    try:
        return SAMPLE_WORKFLOWS[name]
    except KeyError:
        raise KeyError(f"Unknown sample: {name}. Available: {', '.join(SAMPLE_WORKFLOWS)}") from None


def get_template(name: str) -> Plan:
    """Validated plan for a named template."""
    if name not in WORKFLOW_TEMPLATES:
        raise KeyError(f"Unknown template: {name}. Available: {', '.join(WORKFLOW_TEMPLATES)}")
    return validate_plan(WORKFLOW_TEMPLATES[name], DEFAULT_REGISTRY.names)
