#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Report which LLM providers are configured and in what order they are tried.

Safe to run at any time, including before starting the API server. Exits 1
when no provider is usable.

Usage:
  python -m rfp_analyzer.scripts.check_providers            # credentials only
  python -m rfp_analyzer.scripts.check_providers --probe    # also probe local Ollama
  python -m rfp_analyzer.scripts.check_providers --json     # machine-readable output
"""

import argparse
import asyncio
import json
import sys

from rfp_analyzer.llm.registry import DEFAULT_CONFIG_PATH
from rfp_analyzer.llm.router import LLMRouter

if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")

GREEN  = "\033[32m"
RED    = "\033[31m"
YELLOW = "\033[33m"
CYAN   = "\033[36m"
RESET  = "\033[0m"
BOLD   = "\033[1m"


def build_report(router: LLMRouter, probed: bool) -> dict:
    status = router.status()
    return {
        "config_path": str(DEFAULT_CONFIG_PATH),
        "probed": probed,
        "priority": status["priority"],
        "recommended": status["recommended"],
        "providers": status["providers"],
        "available_count": status["total"],
    }


def print_report(report: dict):
    print(f"\n{BOLD}LLM Providers{RESET}  ({report['config_path']})")
    by_key = {p["key"]: p for p in report["providers"]}
    for rank, key in enumerate(report["priority"], 1):
        p = by_key.get(key)
        if p is None:
            print(f"  {YELLOW}?{RESET} {rank}. {key}  (in priority list, not configured)")
            continue
        if p["available"]:
            symbol = f"{GREEN}✓{RESET}"
            note = ""
        elif p.get("requiresProbe") and not report["probed"]:
            symbol = f"{CYAN}~{RESET}"
            note = "  (local backend, run with --probe)"
        else:
            symbol = f"{RED}✗{RESET}"
            note = "  (unreachable)" if p.get("requiresProbe") else "  (no API key)"
        print(f"  {symbol} {rank}. {BOLD}{key}{RESET} [{p['cost']}] {p['name']} "
              f"default={p['models'][0] if p['models'] else '-'}{note}")

    if report["recommended"]:
        print(f"\n  {GREEN}✓{RESET} Primary provider: {report['recommended']}\n")
    else:
        print(f"\n  {RED}✗{RESET} No AI providers available. Set an API key "
              f"(ANTHROPIC_API_KEY, XAI_API_KEY, GROQ_API_KEY, HUGGINGFACE_API_KEY, "
              f"OPENAI_API_KEY) or start Ollama\n")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Check LLM provider configuration")
    parser.add_argument("--probe", action="store_true",
                        help="Probe the local Ollama backend before reporting")
    parser.add_argument("--json", action="store_true", dest="json_out")
    args = parser.parse_args(argv)

    router = LLMRouter()
    if args.probe:
        asyncio.run(router.initialize())
    report = build_report(router, args.probe)

    if args.json_out:
        print(json.dumps(report, indent=2))
    else:
        print_report(report)
    return 0 if report["available_count"] else 1


if __name__ == "__main__":
    sys.exit(main())
