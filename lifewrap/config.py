"""
LifeWrap Configuration Module
Centralized configuration for the summarization core.
"""

import os
from pathlib import Path

import yaml

# Debug Mode Configuration
DEBUG_MODE = os.environ.get('DEBUG', 'false').lower() == 'true'

# Application Paths
APP_NAME = "LifeWrap"
_default_root = Path(os.environ.get('APPDATA', os.path.expanduser('~/.config'))) / APP_NAME
APPDATA_DIR = Path(os.environ.get('LIFEWRAP_HOME', str(_default_root)))
MODELS_DIR = APPDATA_DIR / "models"
CACHE_DIR = APPDATA_DIR / "cache"
LOGS_DIR = APPDATA_DIR / "logs"
CONFIG_DIR = APPDATA_DIR / "config"

# Data directory for generation tracking CSVs
DATA_DIR = APPDATA_DIR / "data"

# Ensure directories exist
for directory in [APPDATA_DIR, MODELS_DIR, CACHE_DIR, LOGS_DIR, CONFIG_DIR, DATA_DIR]:
    directory.mkdir(parents=True, exist_ok=True)

# Bundled configuration files (ship with the package checkout)
BUNDLED_CONFIG_DIR = Path(__file__).parent.parent / "config"
PROMPT_PARAMS_FILE = BUNDLED_CONFIG_DIR / "prompt_parameters.json"

# User-scoped files (survive reinstalls)
USER_PREFERENCES_FILE = CONFIG_DIR / "user_preferences.json"
CREDENTIALS_FILE = CONFIG_DIR / "credentials.json"

# Generation tracking (pandas DataFrame dump, DEBUG_MODE only)
GENERATION_LOG_CSV = DATA_DIR / "generation_log.csv"

# Logging
LOG_FILE = LOGS_DIR / "summarization.log"
LOG_FORMAT = "[%(levelname)s %(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# Remote API Configuration
REMOTE_TIMEOUT_SECONDS = 60  # Bounded; expiry maps to TransientRemoteError
REMOTE_CONNECTIVITY_TIMEOUT_SECONDS = 5
OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"
OPENAI_DEFAULT_MODEL = "gpt-4.1"
ANTHROPIC_DEFAULT_MODEL = "claude-sonnet-4-5"
REMOTE_MAX_OUTPUT_TOKENS = 1024

# On-device assistant (Ollama) Configuration
OLLAMA_API_BASE = os.environ.get('OLLAMA_HOST', "http://localhost:11434")
OLLAMA_MODEL_NAME = "llama3.2:3b"
OLLAMA_MIN_VERSION = "0.5.0"  # First release with JSON-schema structured outputs
OLLAMA_TIMEOUT_SECONDS = 600
OLLAMA_PROBE_TIMEOUT_SECONDS = 3
OLLAMA_CONTEXT_WINDOW = 4096

# Local model Configuration
DEFAULT_LOCAL_MODEL = "phi-3.5-mini"
# Hard ceiling on accumulated characters per generation (bounds runaway output)
MAX_OUTPUT_CHARS = 8000

# --- Local Model Configuration System ---
MODEL_CONFIG_FILE = BUNDLED_CONFIG_DIR / "models.yaml"
MODEL_CONFIGS = {}

# Used when models.yaml is missing or has no usable entry
FALLBACK_MODEL_CONFIG = {
    'filename': 'Phi-3.5-mini-instruct-Q4_K_M.gguf',
    'family': 'phi3',
    'expected_size_mb': [2000, 2500],
    'context_window': 2048,
    'batch_size': 128,
    'max_output_tokens': 256,
    'temperature': 0.2,
    'stop_sequences': ['<|end|>'],
}


def load_model_configs() -> dict:
    """Loads local model configurations from config/models.yaml and returns them."""
    global MODEL_CONFIGS
    try:
        with open(MODEL_CONFIG_FILE) as f:
            data = yaml.safe_load(f) or {}
            MODEL_CONFIGS = data.get('models', {})
        if DEBUG_MODE and MODEL_CONFIGS:
            from lifewrap.logging_config import debug_log
            debug_log(f"[Config] Loaded {len(MODEL_CONFIGS)} model configurations from {MODEL_CONFIG_FILE}")
    except FileNotFoundError:
        if DEBUG_MODE:
            from lifewrap.logging_config import debug_log
            debug_log(f"[Config] WARNING: Model config file not found at {MODEL_CONFIG_FILE}. Using fallback values.")
        MODEL_CONFIGS = {}
    except yaml.YAMLError as e:
        from lifewrap.logging_config import debug_log
        debug_log(f"[Config] ERROR: Failed to parse model config file: {e}")
        MODEL_CONFIGS = {}
    return MODEL_CONFIGS


def get_model_config(model_key: str) -> dict:
    """
    Returns the configuration for a local model, with fallbacks.

    Args:
        model_key: Key of the model in models.yaml (e.g., 'phi-3.5-mini').

    Returns:
        A dictionary containing the model's configuration.
    """
    if not MODEL_CONFIGS:
        load_model_configs()

    # 1. Exact key
    if model_key in MODEL_CONFIGS:
        return MODEL_CONFIGS[model_key]

    # 2. Prefix match (e.g., 'phi-3.5' -> 'phi-3.5-mini')
    for name, config in MODEL_CONFIGS.items():
        if name.startswith(model_key) or model_key.startswith(name):
            if DEBUG_MODE:
                from lifewrap.logging_config import debug_log
                debug_log(f"[Config] Found partial match for '{model_key}': using config for '{name}'.")
            return config

    # 3. Default model
    if DEFAULT_LOCAL_MODEL in MODEL_CONFIGS:
        if DEBUG_MODE:
            from lifewrap.logging_config import debug_log
            debug_log(f"[Config] WARNING: Model '{model_key}' not found. Falling back to '{DEFAULT_LOCAL_MODEL}'.")
        return MODEL_CONFIGS[DEFAULT_LOCAL_MODEL]

    # 4. Hard-coded fallback
    if DEBUG_MODE:
        from lifewrap.logging_config import debug_log
        debug_log("[Config] WARNING: No model configurations found. Using hard-coded fallback values.")
    return dict(FALLBACK_MODEL_CONFIG)


# Load configs on module import
load_model_configs()
# --- End Local Model Configuration System ---
