_NON_NEGATIVE = {"type": "number", "minimum": 0}

PRICING_SCHEMA = {
    "type": "object",
    "required": ["image_per_million", "image_tokens"],
    "properties": {
        "input_per_million": _NON_NEGATIVE,
        "output_per_million": _NON_NEGATIVE,
        "image_per_million": {"type": "number", "exclusiveMinimum": 0},
        "image_tokens": {"type": "integer", "minimum": 1},
        "assumed_prompt_tokens": {"type": "integer", "minimum": 0},
        "probe_cost": _NON_NEGATIVE,
    },
}

BACKEND_SCHEMA = {
    "type": "object",
    "required": ["max_reference_images"],
    "properties": {
        "enabled": {"type": "boolean"},
        "type": {"enum": ["openai", "google", "gemini"]},
        "label": {"type": "string"},
        "api_key_env": {"type": "string"},
        "base_url": {"type": "string"},
        "text_model": {"type": "string"},
        "vision_model": {"type": "string"},
        "image_model": {"type": "string"},
        "image_size": {"type": "string"},
        "image_quality": {"type": "string"},
        "input_fidelity": {"type": "string"},
        "max_reference_images": {"type": "integer", "minimum": 0},
        "max_output_tokens": {"type": "integer", "minimum": 1},
        "timeout_s": {"type": "number", "exclusiveMinimum": 0},
    },
}

CONFIG_SCHEMA = {
    "type": "object",
    "required": ["library", "selection", "reference_image", "analysis", "backends", "pricing", "runtime"],
    "properties": {
        "library": {
            "type": "object",
            "required": ["generated_dir", "reference_dir", "secondary_reference_dir", "extensions"],
            "properties": {
                "root": {"type": ["string", "null"]},
                "generated_dir": {"type": "string", "minLength": 1},
                "reference_dir": {"type": "string", "minLength": 1},
                "secondary_reference_dir": {"type": "string", "minLength": 1},
                "extensions": {
                    "type": "array",
                    "minItems": 1,
                    "items": {"type": "string", "pattern": "^\\.[A-Za-z0-9]+$"},
                },
            },
        },
        "selection": {
            "type": "object",
            "properties": {
                "random_reference_cap": {"type": "integer", "minimum": 0},
                "seed": {"type": ["integer", "null"]},
            },
        },
        "reference_image": {
            "type": "object",
            "properties": {
                "max_px": {"type": "integer", "minimum": 16},
                "jpeg_quality": {"type": "integer", "minimum": 1, "maximum": 95},
            },
        },
        "analysis": {
            "type": "object",
            "properties": {
                "max_images": {"type": "integer", "minimum": 0},
                "vision_backend": {"type": ["string", "null"]},
                "text_backend": {"type": ["string", "null"]},
                "fallback_backend": {"type": ["string", "null"]},
            },
        },
        "backends": {
            "type": "object",
            "minProperties": 1,
            "propertyNames": {"pattern": "^[a-z0-9]+$", "not": {"const": "all"}},
            "additionalProperties": BACKEND_SCHEMA,
        },
        "pricing": {
            "type": "object",
            "additionalProperties": PRICING_SCHEMA,
        },
        "runtime": {
            "type": "object",
            "properties": {
                "default_backend": {"type": "string"},
                "thinking": {"enum": ["full", "fast"]},
                "research_display_chars": {"type": "integer", "minimum": 0},
                "progress": {"type": "boolean"},
                "prompt_path": {"type": ["string", "null"]},
            },
        },
    },
}
