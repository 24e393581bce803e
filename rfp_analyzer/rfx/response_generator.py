#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Proposal response generation and enhancement.

generate_response() drafts a six-section proposal from an RFP analysis and
never raises: when every provider fails, the caller gets an error document
listing the template sections for manual completion.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rfp_analyzer.llm.provider import LLMError
from rfp_analyzer.rfx import llm_bridge

logger = logging.getLogger("rfp_analyzer.rfx.response_generator")

TEMPLATE_SECTIONS = [
    "Executive Summary",
    "Technical Approach",
    "Project Management",
    "Experience & Qualifications",
    "Cost Proposal",
    "Support & Maintenance",
]

RESPONSE_CONTEXT = """You are an expert proposal writer specializing in broadcast and media industry RFPs.
Your responses should demonstrate:
- Deep technical knowledge of broadcast systems
- Understanding of industry standards and compliance
- Experience with 24/7 operational requirements
- Knowledge of integration challenges and solutions
- Awareness of scalability and redundancy needs
- Familiarity with broadcast workflows and equipment"""

RESPONSE_SECTIONS = """Generate a professional RFP response with the following sections:

1. EXECUTIVE SUMMARY
   - Brief overview of our understanding and approach
   - Key value propositions
   - Competitive advantages

2. TECHNICAL APPROACH
   - Detailed solution architecture
   - Technical implementation plan
   - Integration with existing systems
   - Compliance with broadcast standards

3. PROJECT MANAGEMENT
   - Timeline and milestones
   - Resource allocation
   - Risk mitigation strategies
   - Quality assurance approach

4. EXPERIENCE & QUALIFICATIONS
   - Relevant project experience
   - Team qualifications
   - Industry certifications
   - Client references

5. COST PROPOSAL
   - Itemized cost breakdown
   - Value engineering opportunities
   - Assumptions and dependencies
   - Payment terms

6. SUPPORT & MAINTENANCE
   - 24/7 support capabilities
   - Maintenance procedures
   - SLA commitments
   - Training and documentation

Ensure the response addresses all critical requirements identified in the
analysis, provides specific, actionable solutions and keeps a professional
tone throughout. Write each section heading in uppercase on its own line.

Length: Aim for a comprehensive response (2000-3000 words)."""

_HEADING_RE = re.compile(r"^\s*(?:#+\s*)?(?:\d+\.\s*)?([A-Z][A-Z &/]*[A-Z])\s*:?\s*$")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _word_count(text: str) -> int:
    return len(text.split())


def _join(items) -> str:
    return ", ".join(str(i) for i in (items or []))


def build_response_prompt(analysis: Dict[str, Any],
                          selected_documents: Optional[List[Dict[str, Any]]] = None,
                          custom_instructions: Optional[str] = None) -> str:
    risks = [r.get("risk", "") if isinstance(r, dict) else str(r)
             for r in analysis.get("riskFactors") or []]
    history = ""
    if selected_documents:
        history = "Previous Relevant Experience:\n" + "\n".join(
            f"- {d.get('name', 'Document')}: {d.get('summary') or 'Relevant experience'}"
            for d in selected_documents
        ) + "\n\n"

    return (
        f"{RESPONSE_CONTEXT}\n\n"
        "Generate a comprehensive RFP response based on the analysis and requirements below.\n\n"
        "RFP Analysis:\n"
        f"- Title: {analysis.get('title', 'Not specified')}\n"
        f"- Project Type: {analysis.get('projectType', 'Not specified')}\n"
        f"- Budget: {analysis.get('budget', 'Not specified')}\n"
        f"- Timeline: {analysis.get('timeline', 'Not specified')}\n"
        f"- Key Requirements: {_join(analysis.get('technicalRequirements'))}\n"
        f"- Compliance Standards: {_join(analysis.get('complianceStandards'))}\n"
        f"- Risk Factors: {_join(risks)}\n\n"
        f"{history}"
        f"Custom Instructions: {custom_instructions or 'None'}\n\n"
        f"{RESPONSE_SECTIONS}"
    )


def extract_sections(response_text: str) -> Dict[str, str]:
    """Split a response on uppercase heading lines.

    Headings may carry a number ("1. EXECUTIVE SUMMARY") or a markdown
    prefix. Headings with no body are dropped. Text without any heading is
    returned as a single "Complete Response" section.
    """
    sections: Dict[str, str] = {}
    title = None
    body: List[str] = []

    def _flush():
        content = "\n".join(body).strip()
        if title and content:
            sections[title] = content

    for line in (response_text or "").splitlines():
        match = _HEADING_RE.match(line)
        if match and len(match.group(1)) >= 2:
            _flush()
            title = match.group(1).strip()
            body = []
        elif title is not None:
            body.append(line)
    _flush()

    if not sections:
        sections["Complete Response"] = response_text
    return sections


def _error_document(analysis: Dict[str, Any], error: Exception) -> Dict[str, Any]:
    steps = "\n".join(f"- {s}" for s in TEMPLATE_SECTIONS)
    content = (
        "# RFP Response Generation Error\n\n"
        f"An error occurred while generating the automated response: {error}\n\n"
        "## Next Steps\n"
        "1. Review the RFP analysis results\n"
        "2. Use historical documents as reference\n"
        "3. Create response manually using the provided template sections\n"
        "4. Ensure all technical requirements are addressed\n\n"
        "## Template Sections to Include:\n"
        f"{steps}\n"
    )
    metadata = {
        "generatedAt": _now(),
        "error": True,
        "errorMessage": str(error),
    }
    if isinstance(error, LLMError):
        metadata.update(error.to_dict())
    return {
        "content": content,
        "metadata": metadata,
        "sections": {s: "Error - manual completion required" for s in TEMPLATE_SECTIONS},
        "analysis": analysis,
    }


async def generate_response(analysis: Dict[str, Any],
                            selected_documents: Optional[List[Dict[str, Any]]] = None,
                            custom_instructions: Optional[str] = None,
                            provider: Optional[str] = None,
                            model: Optional[str] = None,
                            original_content: str = "",
                            content_id: Optional[str] = None) -> Dict[str, Any]:
    """Draft a proposal response. Returns an error document on LLM failure."""
    prompt = build_response_prompt(analysis, selected_documents, custom_instructions)
    try:
        result = await llm_bridge.invoke(original_content, prompt, "response_generation",
                                         provider, model, content_id)
    except LLMError as exc:
        logger.error("Response generation failed: %s", exc)
        return _error_document(analysis, exc)

    return {
        "content": result.text,
        "metadata": {
            "generatedAt": _now(),
            "provider": result.provider,
            "model": result.model_id,
            "attemptedProviders": list(result.attempted_providers),
            "basedOnAnalysis": analysis.get("title"),
            "documentsUsed": len(selected_documents or []),
            "customInstructions": bool(custom_instructions),
            "wordCount": _word_count(result.text),
            "usage": result.usage.to_dict(),
        },
        "sections": extract_sections(result.text),
        "analysis": analysis,
    }


async def enhance_response(original_response: Dict[str, Any], enhancement_instructions: str,
                           provider: Optional[str] = None,
                           model: Optional[str] = None) -> Dict[str, Any]:
    """Rewrite a response per the instructions. LLM errors propagate."""
    original_text = original_response.get("content", "")
    instruction = (
        "Please enhance the following RFP response based on these instructions:\n\n"
        f"Enhancement Instructions:\n{enhancement_instructions}\n\n"
        "Please provide an improved version that:\n"
        "- Addresses the enhancement instructions\n"
        "- Maintains the professional tone\n"
        "- Preserves all critical technical information\n"
        "- Ensures broadcast industry expertise is evident\n\n"
        "The original response follows as the document content."
    )
    result = await llm_bridge.invoke(original_text, instruction, "response_enhancement",
                                     provider, model)
    return {
        "content": result.text,
        "metadata": {
            "enhancedAt": _now(),
            "provider": result.provider,
            "model": result.model_id,
            "enhancementInstructions": enhancement_instructions,
            "originalWordCount": _word_count(original_text),
            "enhancedWordCount": _word_count(result.text),
        },
        "sections": extract_sections(result.text),
        "original": original_response,
    }
