#!/usr/bin/env python3
# CUI // SP-PROPIN
"""RFP analysis: structured, comprehensive and multi-document analysis,
keyword extraction, and the document Q&A assistant.

All functions route through llm_bridge, so provider preference and fallback
apply uniformly. The router returns raw text; turning it into a structured
record is done here, with a narrative fallback record when the model does
not return parseable JSON.

Functions exposed to the dashboard:
  analyze_rfp()                - structured analysis (title, budget, risks, ...)
  analyze_rfp_comprehensive()  - proposal-preparation analysis
  analyze_multiple()           - one comprehensive analysis across documents
  answer_question()            - free-form assistant answer
  extract_keywords()           - keyword list for document search
  create_mock_analysis()       - heuristic analysis when no AI is configured
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rfp_analyzer.llm.provider import InvocationResult, LLMError
from rfp_analyzer.rfx import llm_bridge

logger = logging.getLogger("rfp_analyzer.rfx.analyzer")

KEYWORD_DOCUMENT_CHARS = 3000

BROADCAST_MEDIA_CONTEXT = """
You are an expert RFP analyst specializing in broadcast and media industry projects.
Focus on these key areas:
- Broadcasting equipment and infrastructure
- Media production workflows
- Content delivery networks (CDN)
- Live streaming and video production
- Audio/video encoding and transcoding
- Media asset management systems
- Compliance with broadcast standards (EBU, SMPTE, etc.)
- Integration with existing broadcast systems
- Scalability and redundancy requirements
- 24/7 operational requirements
"""

ANALYSIS_PROMPT = f"""{BROADCAST_MEDIA_CONTEXT}
Analyze the RFP document below and provide a structured analysis in JSON format.

Extract and analyze:
1. Project title and type
2. Budget range (if mentioned)
3. Timeline and key deadlines
4. Critical technical requirements
5. Risk factors and potential challenges
6. Opportunity areas for competitive advantage
7. Compliance and standards requirements
8. Integration requirements with existing systems
9. Performance and scalability requirements
10. Key evaluation criteria

Return your analysis as a JSON object with the following structure:
{{
  "title": "Project title",
  "projectType": "Type of project (e.g., 'Broadcast Infrastructure Upgrade')",
  "budget": "Budget information or 'Not specified'",
  "timeline": "Timeline information",
  "keyDeadlines": ["deadline1", "deadline2"],
  "technicalRequirements": ["req1", "req2"],
  "complianceStandards": ["standard1", "standard2"],
  "integrationRequirements": ["integration1", "integration2"],
  "performanceRequirements": ["perf1", "perf2"],
  "riskFactors": [
    {{"risk": "Risk description", "severity": "High|Medium|Low", "impact": "Impact description"}}
  ],
  "opportunityAreas": ["opportunity1", "opportunity2"],
  "evaluationCriteria": ["criteria1", "criteria2"],
  "keyWords": ["keyword1", "keyword2"],
  "industrySpecific": {{
    "broadcastStandards": ["standard1", "standard2"],
    "equipmentTypes": ["equipment1", "equipment2"],
    "workflowRequirements": ["workflow1", "workflow2"]
  }}
}}

Ensure all analysis is specific to the broadcast and media industry context."""

COMPREHENSIVE_PROMPT = f"""{BROADCAST_MEDIA_CONTEXT}
You are reviewing an RFP document for comprehensive analysis and proposal preparation.
Provide a detailed, structured analysis covering all the following areas:

COMPREHENSION AND HIGHLIGHTING
- The main objectives and purpose of the RFP
- Key eligibility criteria or requirements
- Important deadlines and submission instructions
- Any mandatory deliverables, forms, or templates
- Evaluation criteria or scoring mechanisms
- Contact points or Q&A instructions

TECHNICAL REQUIREMENTS BREAKDOWN
- All technical specifications, functional requirements, or service-level expectations
- Any ambiguities, conflicts, or areas requiring clarification
- Compliance requirements (certifications, data protection, security standards)

RESPONSE STRATEGY
- Suggest a response structure (executive summary, technical approach, team bios, pricing)
- Suggest key messaging or value propositions to emphasize
- Identify risks or potential gaps in ability to meet requirements, with recommendations

DRAFTING GUIDANCE
- Provide draft response outline for each RFP section
- Highlight compliance with specific RFP criteria
- Suggest persuasive and professional language approaches

Return your analysis as a JSON object with this structure:
{{
  "title": "Project title extracted from RFP",
  "projectType": "Type of project",
  "budget": "Budget information or 'Not specified'",
  "timeline": "Timeline information",
  "comprehensionHighlighting": {{
    "mainObjectives": [], "rfpPurpose": "", "eligibilityCriteria": [],
    "deadlinesSubmission": [{{"deadline": "", "date": "", "importance": "High|Medium|Low"}}],
    "mandatoryDeliverables": [],
    "evaluationCriteria": [{{"criteria": "", "weight": "", "description": ""}}],
    "contactPoints": [], "qaInstructions": []
  }},
  "technicalBreakdown": {{
    "technicalSpecifications": [], "functionalRequirements": [],
    "serviceLevelExpectations": [], "performanceRequirements": [],
    "ambiguitiesConflicts": [], "clarificationNeeded": [],
    "complianceRequirements": [{{"requirement": "", "type": "certification|data protection|security",
                                "mandatory": true, "details": ""}}]
  }},
  "responseStrategy": {{
    "suggestedStructure": [{{"section": "", "content": "", "keyPoints": []}}],
    "keyMessaging": [], "valuePropositions": [], "uniqueSellingPoints": [],
    "riskFactors": [{{"risk": "", "severity": "High|Medium|Low", "impact": "", "mitigation": ""}}],
    "competitiveAdvantages": [], "differentiationStrategy": []
  }},
  "draftingGuidance": {{
    "sectionOutlines": [{{"section": "", "outline": "", "keyPoints": [],
                         "complianceNotes": "", "suggestedContent": ""}}],
    "persuasiveLanguage": [], "professionalTone": [], "winThemes": [],
    "clientFocus": [], "proofPoints": []
  }},
  "industrySpecific": {{
    "broadcastStandards": [], "equipmentTypes": [], "workflowRequirements": [],
    "mediaSpecificConsiderations": [], "technologyTrends": [], "regulatoryConsiderations": []
  }},
  "actionItems": [{{"item": "", "priority": "High|Medium|Low", "deadline": "", "owner": "", "description": ""}}],
  "proposalTimeline": [{{"phase": "", "duration": "", "activities": [], "deliverables": []}}],
  "budgetConsiderations": {{"costFactors": [], "pricingStrategy": "", "budgetRisks": []}}
}}

Ensure all analysis is thorough, specific to the broadcast and media industry context,
and provides actionable guidance for proposal preparation."""

KEYWORD_PROMPT = """Extract the most important keywords and phrases from this broadcast/media industry RFP document.
Focus on:
- Technical terms and equipment names
- Industry standards and protocols
- Project requirements and deliverables
- Compliance and regulatory terms
- Workflow and operational terms

Return only a JSON array of strings, ordered by relevance:
["keyword1", "keyword2", "keyword3", ...]"""

ASSISTANT_PROMPT = """You are an expert RFP (Request for Proposal) assistant specializing in the broadcast and media industry.

USER QUESTION:
{question}

Please provide a comprehensive, professional response that:
1. Addresses the specific question based on the RFP document content
2. Provides actionable insights and recommendations
3. Highlights any specific requirements, deadlines, or criteria from the RFP
4. Suggests next steps or considerations for proposal preparation
5. Uses clear, professional language suitable for business contexts

Focus on being thorough yet concise, and always reference specific information from the RFP document when available."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_json_response(text: str) -> Optional[Any]:
    """Parse model output as JSON, tolerating markdown fences and chatter."""
    if not text:
        return None
    cleaned = re.sub(r"```(?:json)?\s*", "", text).strip()
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, ValueError):
        pass
    for opener, closer in (("{", "}"), ("[", "]")):
        start = cleaned.find(opener)
        end = cleaned.rfind(closer) + 1
        if start >= 0 and end > start:
            try:
                return json.loads(cleaned[start:end])
            except (json.JSONDecodeError, ValueError):
                continue
    return None


def _metadata(result: InvocationResult, content_length: int, **extra) -> Dict[str, Any]:
    meta = {
        "analyzedAt": _now(),
        "provider": result.provider,
        "model": result.model_id,
        "attemptedProviders": list(result.attempted_providers),
        "contentLength": content_length,
        "usage": result.usage.to_dict(),
        "durationMs": result.duration_ms,
    }
    meta.update(extra)
    return meta


async def analyze_rfp(document_content: str, provider: Optional[str] = None,
                      model: Optional[str] = None,
                      content_id: Optional[str] = None) -> Dict[str, Any]:
    """Structured RFP analysis. LLM errors propagate to the caller."""
    result = await llm_bridge.invoke(document_content, ANALYSIS_PROMPT, "analysis",
                                     provider, model, content_id)
    analysis = parse_json_response(result.text)
    if not isinstance(analysis, dict):
        logger.error("Failed to parse AI response as JSON (%d chars)", len(result.text))
        analysis = {
            "title": "Analysis completed - see details below",
            "projectType": "Broadcast/Media Project",
            "budget": "Not specified",
            "timeline": "See analysis details",
            "keyDeadlines": [],
            "technicalRequirements": ["See analysis details"],
            "complianceStandards": [],
            "integrationRequirements": [],
            "performanceRequirements": [],
            "riskFactors": [{
                "risk": "AI analysis parsing error - manual review needed",
                "severity": "Medium",
                "impact": "Analysis results may be incomplete",
            }],
            "opportunityAreas": ["Manual review recommended"],
            "evaluationCriteria": [],
            "keyWords": [],
            "industrySpecific": {
                "broadcastStandards": [],
                "equipmentTypes": [],
                "workflowRequirements": [],
            },
            "rawAnalysis": result.text,
        }
    analysis["analysisMetadata"] = _metadata(result, len(document_content or ""))
    return analysis


async def analyze_rfp_comprehensive(document_content: str, provider: Optional[str] = None,
                                    model: Optional[str] = None,
                                    content_id: Optional[str] = None) -> Dict[str, Any]:
    """Comprehensive proposal-preparation analysis."""
    result = await llm_bridge.invoke(document_content, COMPREHENSIVE_PROMPT,
                                     "comprehensive_analysis", provider, model, content_id)
    analysis = parse_json_response(result.text)
    if not isinstance(analysis, dict):
        logger.error("Failed to parse comprehensive analysis as JSON (%d chars)",
                     len(result.text))
        analysis = {
            "title": "Comprehensive Analysis - see details below",
            "projectType": "Broadcast/Media Project",
            "budget": "Not specified",
            "timeline": "See analysis details",
            "comprehensiveAnalysis": result.text,
            "analysisNote": ("The AI provided a detailed analysis that couldn't be "
                             "automatically structured. Please review the comprehensive "
                             "analysis section."),
        }
    analysis["analysisMetadata"] = _metadata(
        result, len(document_content or ""), analysisType="comprehensive",
    )
    return analysis


def combine_documents(documents: List[Dict[str, Any]]) -> str:
    """Join several processed documents into one analysis input."""
    listing = "\n".join(f"{i + 1}. {d.get('originalFile', '')}"
                        for i, d in enumerate(documents))
    combined = "\n".join(
        f"\n\n=== DOCUMENT {i + 1}: {d.get('originalFile', '')} ===\n{d.get('content', '')}"
        for i, d in enumerate(documents)
    )
    return f"""You are analyzing {len(documents)} related documents for an RFP analysis:

Documents being analyzed:
{listing}

Please analyze these documents as a comprehensive set, considering:
1. How they relate to each other
2. Any conflicting or complementary information
3. The complete picture they provide for the RFP
4. Cross-references between documents

Combined content:
{combined}
"""


async def analyze_multiple(documents: List[Dict[str, Any]], provider: Optional[str] = None,
                           model: Optional[str] = None) -> Dict[str, Any]:
    """Comprehensive analysis across several processed documents."""
    if not documents:
        raise ValueError("At least one document is required")
    analysis = await analyze_rfp_comprehensive(
        combine_documents(documents), provider, model,
        content_id=documents[0].get("contentId"),
    )
    analysis["multiDocumentAnalysis"] = {
        "documentCount": len(documents),
        "documents": [
            {
                "contentId": d.get("contentId"),
                "filename": d.get("originalFile"),
                "size": (d.get("metadata") or {}).get("size", 0),
            }
            for d in documents
        ],
        "analyzedAt": _now(),
    }
    return analysis


async def answer_question(document_content: str, question: str,
                          provider: Optional[str] = None, model: Optional[str] = None,
                          content_id: Optional[str] = None) -> Dict[str, Any]:
    """Free-form assistant answer; the raw model text is the answer."""
    result = await llm_bridge.invoke(document_content,
                                     ASSISTANT_PROMPT.format(question=question),
                                     "assistant", provider, model, content_id)
    return {
        "answer": result.text,
        "metadata": {
            "provider": result.provider,
            "model": result.model_id,
            "attemptedProviders": list(result.attempted_providers),
            "usage": result.usage.to_dict(),
            "timestamp": _now(),
        },
    }


async def extract_keywords(document_content: str) -> List[str]:
    """Keywords for downstream document search. Returns [] on any failure."""
    try:
        result = await llm_bridge.invoke(
            (document_content or "")[:KEYWORD_DOCUMENT_CHARS], KEYWORD_PROMPT,
            "keyword_extraction",
        )
    except LLMError as exc:
        logger.warning("Keyword extraction failed: %s", exc)
        return []
    keywords = parse_json_response(result.text)
    if not isinstance(keywords, list):
        logger.warning("Keyword response was not a JSON array")
        return []
    return [str(k) for k in keywords if isinstance(k, (str, int, float))]


def create_mock_analysis(document_content: str) -> Dict[str, Any]:
    """Heuristic analysis for when no AI provider is configured."""
    lines = [line for line in document_content.split("\n") if line.strip()]
    word_count = len(document_content.split())

    def _has(line, *terms):
        low = line.lower()
        return any(t in low for t in terms)

    potential_title = next(
        (line for line in lines
         if len(line) < 100 and _has(line, "rfp", "request", "proposal")),
        lines[0] if lines else "RFP Analysis",
    )
    budget_lines = [line for line in lines if _has(line, "budget", "cost", "$", "price")]
    timeline_lines = [
        line for line in lines
        if _has(line, "deadline", "timeline", "schedule", "delivery")
        or re.search(r"\d+\s+(days?|weeks?|months?)", line, re.IGNORECASE)
    ]
    preview = document_content[:500] + ("..." if len(document_content) > 500 else "")

    return {
        "title": potential_title.strip()[:80],
        "projectType": "Document Analysis (No AI Available)",
        "budget": ("Budget information found in document" if budget_lines
                   else "Budget not clearly specified"),
        "timeline": ("Timeline information found in document" if timeline_lines
                     else "Timeline not clearly specified"),
        "keyDeadlines": [line.strip()[:100] for line in timeline_lines[:3]],
        "technicalRequirements": [
            "Document parsing completed successfully",
            f"Document contains {word_count} words",
            f"Document has {len(lines)} lines of content",
            "Full AI analysis requires working API provider",
        ],
        "complianceStandards": [],
        "integrationRequirements": [],
        "performanceRequirements": [],
        "riskFactors": [{
            "risk": "AI analysis unavailable - manual review required",
            "severity": "Medium",
            "impact": ("Document content extracted but detailed analysis requires "
                       "AI provider setup"),
        }],
        "opportunityAreas": [
            "Document successfully uploaded and parsed",
            "Text extraction working properly",
            "Ready for AI analysis once provider is configured",
        ],
        "evaluationCriteria": [],
        "keyWords": [],
        "industrySpecific": {
            "broadcastStandards": [],
            "equipmentTypes": [],
            "workflowRequirements": [],
        },
        "analysisMetadata": {
            "analyzedAt": _now(),
            "provider": "fallback",
            "model": "document-parser",
            "contentLength": len(document_content),
            "wordCount": word_count,
            "fallbackReason": "No AI providers available",
        },
        "documentPreview": preview,
    }
