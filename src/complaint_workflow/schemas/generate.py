"""JSON Schema generation for the persisted work item format."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, TypeAdapter

from complaint_workflow.lifecycle import Comment, WorkItem
from complaint_workflow.status import Status

# Default output directory (same directory as this script)
SCHEMA_DIR = Path(__file__).parent

# Registry of models to generate schemas for
PYDANTIC_MODELS: List[tuple[str, Type[BaseModel]]] = [
    ("work_item", WorkItem),
    ("comment", Comment),
]

# Enums (use TypeAdapter)
ENUM_TYPES: List[tuple[str, type]] = [
    ("status", Status),
]


def _finish(name: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
    schema["$id"] = f"complaint-workflow/{name}"
    return schema


def generate_schema(name: str, model: Type[BaseModel]) -> Dict[str, Any]:
    """JSON Schema for a model in its persisted (camelCase) form."""
    return _finish(name, model.model_json_schema(by_alias=True, mode="serialization"))


def generate_enum_schema(name: str, enum_cls: type) -> Dict[str, Any]:
    adapter: TypeAdapter[Any] = TypeAdapter(enum_cls)
    return _finish(name, adapter.json_schema(mode="serialization"))


def schema_to_json(schema: Dict[str, Any]) -> str:
    """Serialize schema to a deterministic JSON string with trailing newline."""
    return json.dumps(schema, indent=2, sort_keys=True) + "\n"


def generate_all_schemas() -> Dict[str, Dict[str, Any]]:
    """Generate all schemas, keyed by schema name."""
    schemas: Dict[str, Dict[str, Any]] = {}
    for name, model in PYDANTIC_MODELS:
        schemas[name] = generate_schema(name, model)
    for name, enum_cls in ENUM_TYPES:
        schemas[name] = generate_enum_schema(name, enum_cls)
    return schemas


def write_all_schemas(schemas: Dict[str, Dict[str, Any]], schema_dir: Path = SCHEMA_DIR) -> None:
    schema_dir.mkdir(parents=True, exist_ok=True)
    for name, schema in schemas.items():
        path = schema_dir / f"{name}.schema.json"
        path.write_text(schema_to_json(schema), encoding="utf-8")
        print(f"Generated {path}")


def check_drift(schema_dir: Path = SCHEMA_DIR) -> int:
    """Compare generated schemas with the files in ``schema_dir``.

    Returns:
        0 if all schemas match, 1 if any drift detected
    """
    schemas = generate_all_schemas()
    drift_detected = False

    for name, schema in schemas.items():
        path = schema_dir / f"{name}.schema.json"
        if not path.exists():
            print(f"ERROR: Missing schema file: {path}", file=sys.stderr)
            drift_detected = True
            continue
        if path.read_text(encoding="utf-8") != schema_to_json(schema):
            print(f"ERROR: Schema drift detected in {path}", file=sys.stderr)
            drift_detected = True

    expected_files = {f"{name}.schema.json" for name in schemas}
    actual_files = {p.name for p in schema_dir.glob("*.schema.json")}
    for orphan in sorted(actual_files - expected_files):
        print(f"Orphaned schema {orphan}", file=sys.stderr)
        drift_detected = True

    if drift_detected:
        print("\nSchema drift detected. Run without --check to regenerate.", file=sys.stderr)
        return 1

    print(f"All {len(schemas)} schemas are up to date.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for schema generation.

    Returns:
        Exit code (0 for success, 1 for failure/drift)
    """
    parser = argparse.ArgumentParser(
        description="Generate JSON schemas for the persisted work item format"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Check for schema drift without writing files (CI mode)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=SCHEMA_DIR,
        help="Directory holding the *.schema.json files",
    )
    args = parser.parse_args(argv)

    if args.check:
        return check_drift(args.output_dir)

    schemas = generate_all_schemas()
    write_all_schemas(schemas, args.output_dir)
    print(f"\nSuccessfully generated {len(schemas)} schemas.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
