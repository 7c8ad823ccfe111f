#!/usr/bin/env python3
"""
Configuration Script

Writes ~/.writing_agents/config.json from the current configuration plus the
given overrides. Values that came from environment variables are not persisted.

Usage:
    python scripts/configure.py --supabase-url https://x.supabase.co --supabase-key KEY
    python scripts/configure.py --threshold 0.8 --probes 20
    python scripts/configure.py --show
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def _mask(value: str) -> str:
    if not value:
        return "(not set)"
    return value[:4] + "..." if len(value) > 8 else "***"


def apply_overrides(config, args) -> int:
    """Copy CLI values onto the config; returns how many were applied."""
    overrides = [
        (args.supabase_url, config.supabase, "url"),
        (args.supabase_key, config.supabase, "key"),
        (args.anthropic_api_key, config.llm, "anthropic_api_key"),
        (args.anthropic_model, config.llm, "anthropic_model"),
        (args.threshold, config.search, "threshold"),
        (args.probes, config.supabase, "ivfflat_probes"),
        (args.port, config.server, "port"),
    ]
    applied = 0
    for value, section, attr in overrides:
        if value is not None:
            setattr(section, attr, value)
            # explicit values are persisted even when env also sets them
            config._env_sourced_keys.discard(attr)
            applied += 1
    return applied


def main():
    from writing_agents.common.config import CONFIG_PATH, load_config, save_config

    parser = argparse.ArgumentParser(description="Write the writing agents config file")
    parser.add_argument("--supabase-url")
    parser.add_argument("--supabase-key")
    parser.add_argument("--anthropic-api-key")
    parser.add_argument("--anthropic-model")
    parser.add_argument("--threshold", type=float, help="Similarity match threshold")
    parser.add_argument("--probes", type=int, help="ivfflat lists probed per query")
    parser.add_argument("--port", type=int)
    parser.add_argument("--show", action="store_true", help="Print the effective configuration and exit")
    args = parser.parse_args()

    config = load_config()

    if args.show:
        print(f"[Config] File: {CONFIG_PATH}")
        print(f"[Config] Supabase URL: {config.supabase.url or '(not set)'}")
        print(f"[Config] Supabase key: {_mask(config.supabase.key)}")
        print(f"[Config] Anthropic key: {_mask(config.llm.anthropic_api_key)}")
        print(f"[Config] Model: {config.llm.anthropic_model}")
        print(f"[Config] Threshold: {config.search.threshold}, probes: {config.supabase.ivfflat_probes}")
        return

    applied = apply_overrides(config, args)
    save_config(config)
    print(f"[Config] Saved {CONFIG_PATH} ({applied} values updated)")


if __name__ == "__main__":
    main()
