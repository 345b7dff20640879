"""
Image stack CLI: setup, deploy, images, destroy. Wraps the Pulumi stack for the client image.
Run `ecr-image setup` once; then use `ecr-image deploy <version>`, `ecr-image images`, `ecr-image destroy`.
"""

import os
from pathlib import Path
import subprocess
import sys
from typing import Any

import yaml

from ecr_image.config import APP_NAME
from ecr_image.registry.ecr import MAX_IMAGE_COUNT, repository_name

CONFIG_DIR = ".ecr-image"
CONFIG_FILENAME = "config.yaml"
PROGRAM_DIR = "ecr_image"
DEFAULT_STACK_PREFIX = "dev"


def _project_root() -> Path:
    """Return the current working directory; commands are run from the repo root."""
    return Path.cwd()


def _config_path() -> Path:
    return _project_root() / CONFIG_DIR / CONFIG_FILENAME


def _load_config() -> dict[str, Any] | None:
    path = _config_path()
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else None


def _save_config(backend_url: str, region: str, stack_prefix: str = DEFAULT_STACK_PREFIX) -> None:
    path = _config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            {
                "backend_url": backend_url,
                "region": region,
                "stack_prefix": stack_prefix,
            },
            f,
            default_flow_style=False,
        )
    print(f"Configuration saved to {path}")


def _require_config() -> dict[str, Any]:
    config = _load_config()
    if not config or not config.get("backend_url") or not config.get("region"):
        print("Configuration missing or incomplete. Run: ecr-image setup", file=sys.stderr)
        sys.exit(1)
    return config


def _run(cmd: list[str], env: dict[str, str] | None = None, check: bool = True) -> subprocess.CompletedProcess:
    full_env = os.environ.copy()
    if env:
        full_env.update(env)
    return subprocess.run(
        cmd,
        cwd=_project_root(),
        env=full_env,
        check=check,
    )


def _pulumi(*args: str) -> list[str]:
    return ["pulumi", *args, "-C", PROGRAM_DIR]


def _stack_name(config: dict[str, Any], env: str | None = None) -> str:
    prefix = config.get("stack_prefix", DEFAULT_STACK_PREFIX)
    region = config["region"]
    if env:
        return f"{prefix}.{APP_NAME}.{env}.{region}"
    return f"{prefix}.{APP_NAME}.{region}"


def _require_program_dir() -> None:
    if not (_project_root() / PROGRAM_DIR / "Pulumi.yaml").exists():
        print(f"{PROGRAM_DIR}/Pulumi.yaml not found. Run this from the repo root.", file=sys.stderr)
        sys.exit(1)


# --- setup ---


def _cmd_setup() -> None:
    print("First-time setup. You will need:")
    print("  1) S3 URI for infrastructure state (e.g. s3://your-account-pulumi-state)")
    print("  2) Default AWS region (e.g. us-west-2)")
    print()

    backend_url = os.environ.get("ECR_IMAGE_BACKEND_URL", "").strip()
    if not backend_url:
        backend_url = input("S3 URI for infrastructure state: ").strip()
    if not backend_url:
        print("Backend URL is required.", file=sys.stderr)
        sys.exit(1)

    region = os.environ.get("ECR_IMAGE_REGION", "").strip()
    if not region:
        region = input("Default AWS region (e.g. us-west-2): ").strip()
    if not region:
        print("Region is required.", file=sys.stderr)
        sys.exit(1)

    stack_prefix = os.environ.get("ECR_IMAGE_STACK_PREFIX", DEFAULT_STACK_PREFIX).strip() or DEFAULT_STACK_PREFIX
    _save_config(backend_url, region, stack_prefix)
    print("Setup complete. You can now use: ecr-image deploy <version>, ecr-image images, ecr-image destroy")


# --- deploy ---


def _cmd_deploy(version: str, env: str | None, build_cache: bool) -> None:
    config = _require_config()
    _require_program_dir()
    if not version.strip():
        print("Version is required.", file=sys.stderr)
        sys.exit(1)
    stack = _stack_name(config, env)
    region = config["region"]
    run_env = {"PULUMI_BACKEND_URL": config["backend_url"]}

    select = _run(_pulumi("stack", "select", stack), env=run_env, check=False)
    if select.returncode != 0:
        _run(_pulumi("stack", "init", stack), env=run_env)
    _run(_pulumi("config", "set", "aws:region", region), env=run_env)
    _run(_pulumi("config", "set", "version", version), env=run_env)
    if env:
        _run(_pulumi("config", "set", "env", env), env=run_env)
    _run(_pulumi("config", "set", "buildCache", "true" if build_cache else "false"), env=run_env)

    print(f"Building and pushing {repository_name(APP_NAME, env)}:{version} (stack {stack})...")
    _run(_pulumi("up", "-y"), env=run_env)
    print(f"Image {repository_name(APP_NAME, env)}:{version} pushed.")


# --- images ---


def _cmd_images(env: str | None) -> None:
    config = _load_config()
    region = config.get("region") if config else os.environ.get("AWS_REGION", "us-west-2")
    repo = repository_name(APP_NAME, env)

    import boto3

    client = boto3.client("ecr", region_name=region)
    images: list[dict[str, Any]] = []
    try:
        paginator = client.get_paginator("describe_images")
        for page in paginator.paginate(repositoryName=repo):
            images.extend(page.get("imageDetails", []))
    except client.exceptions.RepositoryNotFoundException:
        print(f"Repository '{repo}' not found in {region}.", file=sys.stderr)
        sys.exit(1)

    if not images:
        print(f"No images in {repo}.")
        return
    images.sort(key=lambda d: d["imagePushedAt"], reverse=True)
    print(f"{repo} ({len(images)} image(s), retention keeps the last {MAX_IMAGE_COUNT})")
    for detail in images:
        tags = ", ".join(detail.get("imageTags", [])) or "<untagged>"
        pushed = detail["imagePushedAt"].strftime("%Y-%m-%d %H:%M:%S")
        print(f"  {pushed}  {detail['imageDigest'][:19]}  {tags}")


# --- destroy ---


def _cmd_destroy(env: str | None) -> None:
    config = _require_config()
    _require_program_dir()
    stack = _stack_name(config, env)
    run_env = {"PULUMI_BACKEND_URL": config["backend_url"]}

    select = _run(_pulumi("stack", "select", stack), env=run_env, check=False)
    if select.returncode != 0:
        print(f"No infrastructure found for stack {stack}.", file=sys.stderr)
        sys.exit(1)
    confirm = input(f"This will remove repository '{repository_name(APP_NAME, env)}' and its images. Continue? [y/N]: ")
    if confirm.strip().lower() != "y":
        print("Cancelled.")
        sys.exit(0)
    _run(_pulumi("destroy", "-y"), env=run_env)
    rm = _run(_pulumi("stack", "rm", stack, "--yes"), env=run_env, check=False)
    if rm.returncode != 0:
        print(f"Stack {stack} could not be removed; it may already be gone.", file=sys.stderr)
    else:
        print(f"Stack {stack} removed.")


def main(argv: list[str] | None = None) -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Manage the client image stack (deploy, images, destroy). Run 'ecr-image setup' first."
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("setup", help="One-time setup: state storage, region")
    deploy_p = sub.add_parser("deploy", help="Build and push the image tagged with <version>")
    deploy_p.add_argument("version", help="Image tag to build and push")
    deploy_p.add_argument("--env", help="Environment prefix for the repository name")
    deploy_p.add_argument("--build-cache", action="store_true", help="Import/export the :cache build cache")
    images_p = sub.add_parser("images", help="List images currently kept in the repository")
    images_p.add_argument("--env", help="Environment prefix for the repository name")
    destroy_p = sub.add_parser("destroy", help="Remove the repository and its stack")
    destroy_p.add_argument("--env", help="Environment prefix for the repository name")
    args = parser.parse_args(argv)

    if args.command == "setup":
        _cmd_setup()
    elif args.command == "deploy":
        _cmd_deploy(args.version, args.env, args.build_cache)
    elif args.command == "images":
        _cmd_images(args.env)
    elif args.command == "destroy":
        _cmd_destroy(args.env)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
