#!/usr/bin/env python3
"""
Signal Canvas entry point.

Submits one prompt, streams three artifacts side by side, and prints the
settled session. Optionally runs the mutation flow on one artifact.

Usage:
    # Basic usage
    python scripts/run_canvas.py "Orbital trajectory graph"

    # Mutate artifact 1 and apply the first variant
    python scripts/run_canvas.py --mutate 1 --apply 0 "Orbital trajectory graph"

    # Write each artifact as a standalone HTML page
    python scripts/run_canvas.py --format document --out ./exports "Neural sync relay"

    # Print example prompts (topped up by the model)
    python scripts/run_canvas.py --suggest

LLM Provider Selection (automatic):
    - ANTHROPIC_API_KEY / ANTHROPIC_AUTH_TOKEN → Anthropic
    - OPENAI_API_KEY → OpenAI
    - Neither → every artifact stays empty; the run still completes
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from a source checkout without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from signal_canvas.api_client import MultiProviderClient
from signal_canvas.config import CanvasConfig
from signal_canvas.export import to_html_document, to_react_component
from signal_canvas.models import SessionSnapshot
from signal_canvas.orchestrator import CanvasOrchestrator
from signal_canvas.suggestions import PromptSuggestions

logger = logging.getLogger("signal_canvas.cli")

FORMATS = ("html", "react", "document")


def render_artifact(content: str, fmt: str = "html", title: str = "Signal Canvas Export") -> str:
    """Render artifact markup in the requested output format."""
    if fmt == "react":
        return to_react_component(content)
    if fmt == "document":
        return to_html_document(content, title=title)
    return content


def session_to_dict(session: SessionSnapshot, fmt: str = "html") -> dict[str, Any]:
    """JSON-friendly view of a settled session."""
    return {
        "id": session.id,
        "prompt": session.prompt,
        "created_at": session.created_at.isoformat(),
        "artifacts": [
            {
                "id": a.id,
                "label": a.label,
                "status": a.status.value,
                "content": render_artifact(a.content, fmt, title=a.label),
            }
            for a in session.artifacts
        ],
    }


def write_artifacts(session: SessionSnapshot, out_dir: Path, fmt: str = "html") -> list[Path]:
    """Write one file per artifact. Returns the written paths."""
    out_dir.mkdir(parents=True, exist_ok=True)
    suffix = ".jsx" if fmt == "react" else ".html"
    paths = []
    for artifact in session.artifacts:
        path = out_dir / f"{artifact.id}{suffix}"
        path.write_text(render_artifact(artifact.content, fmt, title=artifact.label))
        paths.append(path)
    return paths


async def run_canvas(
    prompt: str,
    orchestrator: CanvasOrchestrator,
    mutate: int | None = None,
    apply: int | None = None,
) -> dict[str, Any]:
    """
    Run one submission (and optionally a mutation) to completion.

    Returns:
        Dict with the settled session and any variants produced
    """
    task = orchestrator.submit(prompt)
    if task is None:
        raise ValueError("Prompt is empty or another submission is still running")
    await orchestrator.wait_idle()

    session = orchestrator.current_session()
    if session is None:
        raise ValueError("Submission produced no session")
    result: dict[str, Any] = {"session": session, "variants": []}

    if mutate is not None:
        orchestrator.focus_artifact(mutate)
        if orchestrator.generate_variations(session.id, mutate) is None:
            raise ValueError(f"Cannot mutate artifact {mutate}")
        await orchestrator.wait_idle()

        variants = orchestrator.get_variants()
        result["variants"] = [v.model_dump() for v in variants]

        if apply is not None:
            if not 0 <= apply < len(variants):
                logger.warning(f"No variant {apply} to apply ({len(variants)} produced)")
            else:
                orchestrator.apply_variant(session.id, mutate, variants[apply].content)
                result["session"] = orchestrator.current_session()
        orchestrator.clear_focus()

    return result


async def do_suggest(client: MultiProviderClient, config: CanvasConfig) -> list[str]:
    suggestions = PromptSuggestions()
    await suggestions.refresh(client, model=config.models.suggestion_model)
    return list(suggestions.suggestions)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Generate live-streamed HUD components from a prompt",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("prompt", nargs="?", help="What to build")
    parser.add_argument("--mutate", "-m", type=int, metavar="INDEX", help="Generate variants for artifact INDEX")
    parser.add_argument("--apply", "-a", type=int, metavar="N", help="Apply variant N (requires --mutate)")
    parser.add_argument("--format", "-f", choices=FORMATS, default="html", help="Output format (default: html)")
    parser.add_argument("--out", "-o", type=Path, help="Write one file per artifact into this directory")
    parser.add_argument("--config", "-c", type=Path, help="Config file path")
    parser.add_argument("--suggest", action="store_true", help="Print example prompts and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.apply is not None and args.mutate is None:
        parser.error("--apply requires --mutate")

    config = CanvasConfig.load(args.config)
    client = MultiProviderClient()

    if args.suggest:
        print(json.dumps(asyncio.run(do_suggest(client, config)), indent=2))
        return 0

    if not args.prompt or not args.prompt.strip():
        parser.error("Prompt required")

    orchestrator = CanvasOrchestrator(client, config=config)
    try:
        result = asyncio.run(run_canvas(args.prompt, orchestrator, mutate=args.mutate, apply=args.apply))
    except KeyboardInterrupt:
        print("\n[interrupted]")
        return 1
    except (ValueError, IndexError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    session = result["session"]
    if args.out:
        for path in write_artifacts(session, args.out, args.format):
            logger.info(f"Wrote {path}")

    print(json.dumps(
        {"session": session_to_dict(session, args.format), "variants": result["variants"]},
        indent=2,
    ))
    return 0


if __name__ == "__main__":
    sys.exit(main())
