import asyncio
import os
import sys
from pathlib import Path

# Add project root to path so we can import app
sys.path.append(os.getcwd())

from app.config.settings import settings
from app.services import ProcessingError, SourceNotFoundError, create_generation_orchestrator


async def main():
    file_path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("input.mp3")

    if not file_path.exists():
        print(f"File '{file_path}' not found. Please provide a path to an audio file.")
        print("Usage: python scripts/try_generation.py [path/to/audio.mp3]")
        return 1

    remote = "enabled" if settings.remote_credentials_configured else "disabled (local only)"
    print(f"Generating variants of {file_path} (remote analysis {remote})...")

    orchestrator = create_generation_orchestrator(settings)
    try:
        tracks = await orchestrator.generate(file_path)
    except SourceNotFoundError as e:
        print(f"\nSource error: {e}")
        return 1
    except ProcessingError as e:
        print(f"\nProcessing error: {e}")
        return 1

    print("\n--- Generated Tracks ---")
    for track in tracks:
        print(f"{track.preset:<14} {track.duration:>6}  {track.file_path}")
    print("------------------------")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
