"""Test export and import of adapter configurations"""

import tempfile
import unittest
from datetime import date
from pathlib import Path

import yaml

from madapt.engine.errors import ConfigValidationError
from madapt.schema.adapter_config import ModelAdapterConfig
from madapt.schema.parse_yaml import (
    export_config,
    export_filename,
    load_config,
    mask_api_key,
    parse_config,
    serialize_config,
)
from madapt.schema.presets import stream_presets

STREAM_CONFIG = ModelAdapterConfig.model_validate(
    {
        'name': "Claude Sonnet",
        'model_id': "claude-sonnet",
        'endpoint': "https://api.anthropic.com/v1/messages",
        'headers': {
            'x-api-key': "sk-ant-0123456789",
            'anthropic-version': "2023-06-01",
        },
        'endpoint_type': "stream",
        'body_config': {
            'model': "claude-sonnet-4",
            'max_tokens': 1024,
            'stream': True,
            'messages': "{{messages}}",
        },
        'message_format': {
            'mapping': {
                'role': {
                    'source': "role",
                    'target': "role",
                    'roleMapping': [{'from': "system", 'to': "user"}],
                },
                'content': {'source': "content", 'target': "content"},
            },
            'customFields': [
                {'name': "meta", 'value': {'a': [1, None]}, 'type': "object"}
            ],
        },
        'stream_config': stream_presets['anthropic'].model_dump(
            exclude_unset=True
        ),
        'api_key': "sk-ant-0123456789",
    }
)


class TestSerialize(unittest.TestCase):
    def test_document_names_and_order(self):
        text = serialize_config(STREAM_CONFIG)
        document = yaml.safe_load(text)
        self.assertEqual(
            list(document.keys())[:4],
            ['name', 'model_id', 'endpoint', 'headers'],
        )
        self.assertIn("roleMapping:", text)
        self.assertIn("customFields:", text)
        self.assertIn("from: system", text)

    def test_roundtrip(self):
        text = serialize_config(STREAM_CONFIG)
        self.assertEqual(serialize_config(parse_config(text)), text)
        self.assertEqual(parse_config(text), STREAM_CONFIG)

    def test_null_in_body_kept(self):
        config = ModelAdapterConfig(
            endpoint="https://example.com",
            body_config={'stop': None, 'q': "{{content}}"},
        )
        text = serialize_config(config)
        self.assertEqual(
            parse_config(text).body_config, {'stop': None, 'q': "{{content}}"}
        )

    def test_mask_secrets(self):
        document = yaml.safe_load(
            serialize_config(STREAM_CONFIG, mask_secrets=True)
        )
        self.assertEqual(
            document['headers'], {'x-api-key': "", 'anthropic-version': ""}
        )
        self.assertEqual(document['api_key'], "sk-ant-0***")
        # the configuration is not modified
        self.assertEqual(STREAM_CONFIG.api_key, "sk-ant-0123456789")

    def test_mask_api_key(self):
        self.assertEqual(mask_api_key("abcdefghijkl"), "abcdefgh***")


class TestParse(unittest.TestCase):
    def test_invalid_yaml(self):
        with self.assertRaises(ConfigValidationError):
            parse_config("endpoint: [unclosed")

    def test_not_a_mapping(self):
        with self.assertRaises(ConfigValidationError):
            parse_config("- a\n- b\n")

    def test_invalid_document(self):
        with self.assertRaises(ConfigValidationError) as ctx:
            parse_config("endpoint: not-a-url\nmethod: PATCH\n")
        self.assertEqual(len(ctx.exception.issues), 2)
        self.assertNotIn(
            "For further information visit", str(ctx.exception)
        )

    def test_legacy_document(self):
        config = parse_config(
            "endpoint: https://example.com/sse\n"
            "endpoint_type: sse\n"
            "request_schema:\n"
            "  prompt: '{{content}}'\n"
            "stream_config:\n"
            "  contentPath: choices[0].delta.content\n"
            "  doneSignal: '[DONE]'\n"
        )
        self.assertEqual(config.endpoint_type, "stream")
        self.assertEqual(config.body_config, {'prompt': "{{content}}"})
        self.assertEqual(len(config.stream_config.event_mappings), 1)


class TestFiles(unittest.TestCase):
    def test_export_and_load(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "configs" / export_filename(STREAM_CONFIG)
            export_config(STREAM_CONFIG, path)
            self.assertEqual(load_config(path), STREAM_CONFIG)

    def test_load_missing(self):
        with self.assertRaises(FileNotFoundError):
            load_config("no/such/file.yaml")

    def test_export_filename(self):
        self.assertEqual(
            export_filename(STREAM_CONFIG, date(2024, 5, 1)),
            "claude-sonnet-config-2024-05-01.yaml",
        )
        unnamed = ModelAdapterConfig(endpoint="https://example.com")
        self.assertEqual(
            export_filename(unnamed, date(2024, 5, 1)),
            "model-config-2024-05-01.yaml",
        )


if __name__ == '__main__':
    unittest.main()
