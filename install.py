#!/usr/bin/env python
"""Installation script to create virtual environment and install package."""

import os
import platform
import shutil
import subprocess
import sys


def run_command(cmd, description):
    """Run a command and handle errors."""
    print(f"\n{'='*60}")
    print(f"[*] {description}")
    print(f"{'='*60}")
    try:
        subprocess.run(cmd, shell=True, check=True)
        print(f"[OK] {description} - Success!")
    except subprocess.CalledProcessError:
        print(f"[ERR] {description} - Failed!")
        sys.exit(1)


def main():
    print("\n" + "="*60)
    print("[SETUP] media-tracker - One-Time Setup")
    print("="*60)

    is_windows = platform.system() == "Windows"
    python = ".venv\\Scripts\\python.exe" if is_windows else "./.venv/bin/python"

    if os.path.exists(".venv"):
        print("\n[*] Removing existing virtual environment...")
        shutil.rmtree(".venv")

    print("\n[1/3] Creating virtual environment...")
    run_command("py -m venv .venv" if is_windows else "python3 -m venv .venv", "Create virtual environment")

    print("\n[2/3] Installing package...")
    run_command(f"{python} -m pip install -e .", "Install package and dependencies")

    print("\n[3/3] Preparing data directory...")
    os.makedirs("data", exist_ok=True)
    if not os.path.exists(os.path.join("data", "config.yaml")):
        shutil.copy("config.example.yaml", os.path.join("data", "config.yaml"))
        print("[OK] Created data/config.yaml from config.example.yaml")

    print("\n" + "="*60)
    print("[OK] Setup Complete!")
    print("="*60)
    print("\n[NEXT] What to do now:")
    print("\n1. Edit data/config.yaml and set tmdb.api_key")
    print("   (or export TMDB_API_KEY)")

    print("\n2. Activate virtual environment:")
    print("   .venv\\Scripts\\activate" if is_windows else "   source .venv/bin/activate")

    print("\n3. Run commands:")
    print("   media-tracker add show 1396 --title \"Breaking Bad\"")
    print("   media-tracker resolve-dates")
    print("   media-tracker calendar")
    print("   media-tracker web --port 8080")

    print("\n" + "="*60 + "\n")


if __name__ == "__main__":
    main()
