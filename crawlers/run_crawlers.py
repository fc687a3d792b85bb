#!/usr/bin/env python3
"""
Orchestrator that reads configs/sites.yaml and dispatches to site crawlers.

Each enabled site names a crawler module exposing `run(config_path)`; today
that is the Naver News crawler, one entry per crawl profile (e.g. a daily
all-sections crawl and a fast politics-only crawl).
"""
import argparse
import importlib
from typing import Dict, List, Optional

import yaml

DEFAULT_SITES_PATH = "configs/sites.yaml"


def load_sites_config(path: str = DEFAULT_SITES_PATH) -> Dict[str, dict]:
    """Load site definitions from YAML."""
    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    return config.get("sites", {}) or {}


def run_crawler_for_site(site_name: str, site_config: dict) -> bool:
    """Import the site's crawler module and call its `run(config_path)`."""
    if not site_config.get("enabled", False):
        print(f"[INFO] {site_name} is disabled; skipping.")
        return False

    module_path = site_config.get("crawler_module")
    if not module_path:
        print(f"[ERROR] No crawler_module specified for {site_name}.")
        return False

    config_path = site_config.get("config_path")
    if not config_path:
        print(f"[WARN] No config_path specified for {site_name}; using crawler defaults.")

    print(f"[INFO] Running crawler for {site_name} (module={module_path})...")
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        print(f"[ERROR] Cannot import {module_path} for {site_name}: {e}")
        return False
    if not hasattr(module, "run"):
        print(f"[ERROR] Module {module_path} does not have a `run(config_path)` function.")
        return False

    try:
        module.run(config_path)
    except Exception as e:  # noqa: BLE001
        print(f"[ERROR] Failed to run crawler for {site_name}: {e}")
        return False
    print(f"[SUCCESS] {site_name} crawl complete.")
    return True


def main(argv: Optional[List[str]] = None) -> Dict[str, bool]:
    """Main orchestrator entrypoint; returns site -> succeeded."""
    parser = argparse.ArgumentParser(description="Run the configured site crawlers")
    parser.add_argument("--sites-config", default=DEFAULT_SITES_PATH)
    parser.add_argument("--only", nargs="*", help="run just these site names")
    args = parser.parse_args(argv)

    sites = load_sites_config(args.sites_config)
    if not sites:
        print(f"[WARN] No sites found in {args.sites_config}.")
        return {}

    outcome = {}
    for site_name, site_config in sites.items():
        if args.only and site_name not in args.only:
            continue
        outcome[site_name] = run_crawler_for_site(site_name, site_config or {})
    return outcome


if __name__ == "__main__":
    main()
