#!/usr/bin/env python3
"""
Export OpenAPI Specification

This script exports the FastAPI-generated OpenAPI specification of the
Session Service to both JSON and YAML formats for documentation and client
generation.

Usage:
    python scripts/export_openapi.py [--output-dir docs]

Outputs:
    - docs/openapi.json  (JSON format)
    - docs/openapi.yaml  (YAML format)
"""

import argparse
import json
from pathlib import Path
from typing import Any

import yaml

from session_service.main import create_app


def export_openapi_spec(output_dir: Path) -> dict[str, Any]:
    """
    Export the OpenAPI specification to JSON and YAML formats.

    The API version comes from the application settings.

    Args:
        output_dir: Directory receiving openapi.json and openapi.yaml

    Returns:
        The exported specification
    """
    openapi_spec = create_app().openapi()

    output_dir.mkdir(parents=True, exist_ok=True)

    json_path = output_dir / "openapi.json"
    with open(json_path, "w") as f:
        json.dump(openapi_spec, f, indent=2)
    print(f"Exported OpenAPI spec to {json_path}")

    yaml_path = output_dir / "openapi.yaml"
    with open(yaml_path, "w") as f:
        yaml.dump(openapi_spec, f, default_flow_style=False, sort_keys=False)
    print(f"Exported OpenAPI spec to {yaml_path}")

    print("\nOpenAPI Specification Summary:")
    print(f"   Title: {openapi_spec.get('info', {}).get('title', 'N/A')}")
    print(f"   Version: {openapi_spec.get('info', {}).get('version', 'N/A')}")
    print(f"   Paths: {len(openapi_spec.get('paths', {}))}")

    schemas = openapi_spec.get("components", {}).get("schemas", {})
    print(f"   Schemas: {len(schemas)}")

    return openapi_spec


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Export the OpenAPI specification")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path(__file__).parent.parent / "docs",
        help="Directory for openapi.json and openapi.yaml",
    )

    args = parser.parse_args()
    export_openapi_spec(args.output_dir)
