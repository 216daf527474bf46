#!/usr/bin/env python3
"""
Environment Configuration Checker
Validates your .env setup before running the bot.
"""

import sys
import os

def print_header(text):
    """Print a formatted header."""
    print("\n" + "=" * 70)
    print(f"  {text}")
    print("=" * 70)

def print_success(text):
    """Print success message."""
    print(f"✓ {text}")

def print_error(text):
    """Print error message."""
    print(f"✗ {text}")

def print_warning(text):
    """Print warning message."""
    print(f"⚠ {text}")

def check_env_file():
    """Check if .env file exists."""
    print_header("Checking .env file")
    if os.path.exists('.env'):
        print_success(".env file exists")
        return True
    else:
        print_warning(".env file not found (settings must come from the environment)")
        return True

def check_imports():
    """Check if required packages are installed."""
    print_header("Checking Python packages")

    required_packages = [
        ('discord', 'py-cord'),
        ('nacl', 'PyNaCl'),
        ('pydantic_settings', 'pydantic-settings'),
        ('numpy', 'numpy'),
    ]

    all_installed = True
    for module_name, package_name in required_packages:
        try:
            __import__(module_name)
            print_success(f"{package_name} installed")
        except ImportError:
            print_error(f"{package_name} not installed")
            all_installed = False

    if not all_installed:
        print("\n  → Run: pip install -e .")

    return all_installed

def check_opus():
    """Check that libopus can be loaded for voice receive."""
    print_header("Checking Opus")

    try:
        import discord.opus
        if not discord.opus.is_loaded():
            discord.opus._load_default()
        if discord.opus.is_loaded():
            print_success("libopus loaded")
            return True
        print_error("libopus could not be loaded")
    except Exception as e:
        print_error(f"libopus check failed: {e}")
    print("  → Install libopus (e.g. apt install libopus0)")
    return False

def check_config():
    """Check if configuration loads correctly."""
    print_header("Checking configuration")

    try:
        from src.config import settings
        print_success("Configuration loaded")
        return True, settings
    except Exception as e:
        print_error(f"Configuration failed to load: {e}")
        return False, None

def check_discord_token(settings):
    """Check Discord token."""
    print_header("Checking Discord token")

    if settings.discord_token and settings.discord_token != "your_bot_token_here":
        print_success("Discord token is set")
        print(f"  Token: {settings.discord_token[:20]}...")
        return True
    else:
        print_error("Discord token not configured")
        print("  → Set DISCORD_TOKEN in .env")
        return False

def check_routing(settings):
    """Check that transcripts have somewhere to go."""
    print_header("Checking transcript routing")

    if settings.send_channel is None and settings.thread_channel is None:
        print_error("Neither SEND_CHANNEL nor THREAD_CHANNEL is set")
        print("  → Transcripts would be recognized and then dropped")
        return False

    if settings.send_channel is not None:
        print_success(f"Send channel: {settings.send_channel}")
    if settings.thread_channel is not None:
        print_success(f"Thread channel: {settings.thread_channel}")
    if settings.send_thread is not None:
        print(f"  Reusing thread: {settings.send_thread}")
        if settings.thread_channel is None:
            print_warning("SEND_THREAD has no effect without THREAD_CHANNEL")
    if settings.voice_channel is not None:
        print(f"  Pinned voice channel: {settings.voice_channel}")
    return True

def check_provider(settings):
    """Check transcription provider configuration."""
    print_header("Checking transcription provider")

    provider = settings.transcription_provider.lower()
    print(f"  Provider: {provider}")

    if provider == "vosk":
        try:
            __import__("vosk")
            print_success("vosk installed")
        except ImportError:
            print_error("vosk not installed")
            return False
        if os.path.isdir(settings.vosk_model_path):
            print_success(f"Vosk model found at {settings.vosk_model_path}")
            return True
        print_error(f"Vosk model not found at {settings.vosk_model_path}")
        print("  → Download a model from https://alphacephei.com/vosk/models")
        return False

    try:
        __import__("faster_whisper")
        print_success("faster-whisper installed")
    except ImportError:
        print_error("faster-whisper not installed")
        return False

    print(f"  Model: {settings.whisper_model}")
    print(f"  Device: {settings.whisper_device}")
    print(f"  Compute type: {settings.whisper_compute_type}")

    if settings.whisper_device == "cuda":
        try:
            import ctranslate2
            if ctranslate2.get_cuda_device_count() > 0:
                print_success("CUDA is available")
                return True
            print_warning("CUDA not available - GPU acceleration disabled")
            print("  → Check GPU drivers")
            print("  → Or set WHISPER_DEVICE=cpu in .env")
            return False
        except Exception as e:
            print_error(f"Could not check CUDA: {e}")
            return False
    else:
        print_warning("Using CPU for transcription (will be slow)")
        return True

def check_settings(settings):
    """Display other important settings."""
    print_header("Other settings")

    print(f"  Silence threshold: {settings.audio_silence_threshold}s")
    print(f"  Max utterance: {settings.audio_max_utterance}s")
    print(f"  Min confidence: {settings.recognition_min_confidence}")
    print(f"  Connect timeout: {settings.voice_connect_timeout}s")
    print(f"  Log level: {settings.log_level}")

def main():
    """Main checker function."""
    print_header("Voice Relay - Configuration Checker")

    results = []

    results.append(check_env_file())
    results.append(check_imports())
    results.append(check_opus())

    config_ok, settings = check_config()
    results.append(config_ok)

    if not config_ok:
        print_header("Summary")
        print_error("Configuration check failed - fix errors above")
        sys.exit(1)

    results.append(check_discord_token(settings))
    results.append(check_routing(settings))
    results.append(check_provider(settings))

    check_settings(settings)

    print_header("Summary")

    if all(results):
        print_success("All checks passed! You're ready to run the bot.")
        print("\nTo start the bot:")
        print("  python main.py")
        sys.exit(0)
    else:
        print_error("Some checks failed - see errors above")
        print("\nCommon fixes:")
        print("  1. Set DISCORD_TOKEN in .env")
        print("  2. Set SEND_CHANNEL and/or THREAD_CHANNEL in .env")
        print("  3. Install packages: pip install -e .")
        sys.exit(1)

if __name__ == "__main__":
    main()
