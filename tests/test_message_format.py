"""Test message format transformer"""

import unittest

from madapt.engine.message_format import (
    apply_role_mapping,
    normalize_timestamp,
    sample_transformed_message,
    transform_messages,
    validate_message_format,
)
from madapt.schema.adapter_config import MessageFormatConfig, RoleMapping
from madapt.schema.messages import ChatMessage
from madapt.utils.logging import LoglistLogger


def _config(data: dict) -> MessageFormatConfig:
    return MessageFormatConfig.model_validate(data)


BASIC = _config(
    {
        'mapping': {
            'role': {'source': "role", 'target': "author"},
            'content': {'source': "content", 'target': "text"},
        }
    }
)


class TestTransform(unittest.TestCase):
    def test_basic_mapping(self):
        out = transform_messages(
            [{'id': "1", 'role': "user", 'content': "hi"}], BASIC
        )
        self.assertEqual(out, [{'author': "user", 'text': "hi"}])

    def test_chat_message_objects(self):
        out = transform_messages(
            [ChatMessage(id="1", role="assistant", content="ok")], BASIC
        )
        self.assertEqual(out, [{'author': "assistant", 'text': "ok"}])

    def test_nested_targets_and_custom_fields(self):
        config = _config(
            {
                'mapping': {
                    'role': {
                        'source': "role",
                        'target': "author.role",
                        'roleMapping': [
                            {'from': "assistant", 'to': "agent"}
                        ],
                    },
                    'content': {'source': "content", 'target': "text"},
                    'kind': {
                        'source': "literal",
                        'target': "meta.kind",
                        'literalValue': "chat",
                    },
                },
                'customFields': [
                    {'name': "channel", 'value': "web"},
                    {
                        'name': "meta.tags",
                        'value': ["a", "b"],
                        'type': "array",
                    },
                ],
            }
        )
        out = transform_messages(
            [{'id': "1", 'role': "assistant", 'content': "hi"}], config
        )
        self.assertEqual(
            out,
            [
                {
                    'author': {'role': "agent"},
                    'text': "hi",
                    'meta': {'kind': "chat", 'tags': ["a", "b"]},
                    'channel': "web",
                }
            ],
        )

    def test_custom_values_not_shared(self):
        config = _config(
            {
                'mapping': {},
                'customFields': [
                    {'name': "opts", 'value': {'a': 1}, 'type': "object"}
                ],
            }
        )
        first, second = transform_messages(
            [{'role': "user"}, {'role': "user"}], config
        )
        first['opts']['a'] = 2
        self.assertEqual(second['opts'], {'a': 1})
        self.assertEqual(config.custom_fields[0].value, {'a': 1})

    def test_missing_source_not_written(self):
        config = _config(
            {
                'mapping': {
                    'content': {'source': "content", 'target': "text"},
                    'time': {'source': "created_at", 'target': "ts"},
                }
            }
        )
        out = transform_messages([{'role': "user", 'content': "x"}], config)
        self.assertEqual(out, [{'text': "x"}])

    def test_timestamp_transform(self):
        config = _config(
            {
                'mapping': {
                    'time': {
                        'source': "created_at",
                        'target': "ts",
                        'transform': "timestamp",
                    }
                }
            }
        )
        out = transform_messages(
            [{'created_at': "2024-01-02T04:04:05+01:00"}], config
        )
        self.assertEqual(out, [{'ts': "2024-01-02T03:04:05.000Z"}])

    def test_bad_timestamp_kept(self):
        config = _config(
            {
                'mapping': {
                    'time': {
                        'source': "created_at",
                        'target': "ts",
                        'transform': "timestamp",
                    }
                }
            }
        )
        logger = LoglistLogger()
        out = transform_messages(
            [{'created_at': "yesterday"}], config, logger=logger
        )
        self.assertEqual(out, [{'ts': "yesterday"}])
        self.assertEqual(logger.count_logs(level=1), 1)

    def test_invalid_target_skipped(self):
        config = _config(
            {
                'mapping': {
                    'role': {'source': "role", 'target': "a..b"},
                    'content': {'source': "content", 'target': "text"},
                }
            }
        )
        logger = LoglistLogger()
        out = transform_messages(
            [{'role': "user", 'content': "x"}], config, logger=logger
        )
        self.assertEqual(out, [{'text': "x"}])
        self.assertEqual(logger.count_logs(level=1), 1)

    def test_nested_target_skipped(self):
        config = _config(
            {
                'mapping': {
                    'role': {'source': "role", 'target': "author"},
                    'content': {'source': "content", 'target': "text"},
                },
                'customFields': [
                    {'name': "author.kind", 'value': "human",
                     'type': "string"}
                ],
            }
        )
        logger = LoglistLogger()
        out = transform_messages(
            [{'role': "user", 'content': "x"}], config, logger=logger
        )
        self.assertEqual(out, [{'author': "user", 'text': "x"}])
        self.assertEqual(logger.count_logs(level=1), 1)
        self.assertIn("author.kind", logger.get_logs()[0])

    def test_pure(self):
        messages = [
            {'id': "1", 'role': "user", 'content': "a"},
            {'id': "2", 'role': "assistant", 'content': "b"},
        ]
        self.assertEqual(
            transform_messages(messages, BASIC),
            transform_messages(messages, BASIC),
        )
        self.assertEqual(messages[0], {'id': "1", 'role': "user", 'content': "a"})


class TestRoleMapping(unittest.TestCase):
    def test_first_match_wins(self):
        rules = [
            RoleMapping.model_validate({'from': "assistant", 'to': "agent"}),
            RoleMapping.model_validate({'from': "assistant", 'to': "bot"}),
        ]
        self.assertEqual(apply_role_mapping("assistant", rules), "agent")

    def test_unmapped_passthrough(self):
        rules = [RoleMapping.model_validate({'from': "assistant", 'to': "agent"})]
        self.assertEqual(apply_role_mapping("system", rules), "system")
        self.assertEqual(apply_role_mapping("user", None), "user")


class TestTimestamp(unittest.TestCase):
    def test_naive_is_utc(self):
        self.assertEqual(
            normalize_timestamp("2024-01-02T03:04:05"),
            "2024-01-02T03:04:05.000Z",
        )

    def test_zulu(self):
        self.assertEqual(
            normalize_timestamp("2024-01-02T03:04:05.123456Z"),
            "2024-01-02T03:04:05.123Z",
        )

    def test_invalid(self):
        with self.assertRaises(ValueError):
            normalize_timestamp("not a date")


class TestValidation(unittest.TestCase):
    def test_valid(self):
        valid, messages = validate_message_format(BASIC)
        self.assertTrue(valid)
        self.assertEqual(messages, [])

    def test_missing_recommended_is_warning(self):
        config = _config(
            {'mapping': {'content': {'source': "content", 'target': "t"}}}
        )
        valid, messages = validate_message_format(config)
        self.assertTrue(valid)
        self.assertEqual(len(messages), 1)
        self.assertTrue(messages[0].startswith("Warning:"))
        self.assertIn("role", messages[0])

    def test_empty_target(self):
        config = _config(
            {
                'mapping': {
                    'role': {'source': "role", 'target': ""},
                    'content': {'source': "content", 'target': "t"},
                }
            }
        )
        valid, messages = validate_message_format(config)
        self.assertFalse(valid)
        self.assertIn("Empty target path for field: role", messages)

    def test_literal_without_value(self):
        config = _config(
            {
                'mapping': {
                    'role': {'source': "literal", 'target': "role"},
                    'content': {'source': "content", 'target': "t"},
                }
            }
        )
        valid, _ = validate_message_format(config)
        self.assertFalse(valid)

    def test_custom_field_issues(self):
        config = _config(
            {
                'mapping': BASIC.model_dump(by_alias=True)['mapping'],
                'customFields': [
                    {'name': "", 'value': "x"},
                    {'name': "ok", 'value': 3, 'type': "string"},
                ],
            }
        )
        valid, messages = validate_message_format(config)
        self.assertFalse(valid)
        self.assertEqual(len(messages), 2)
        self.assertTrue(messages[1].startswith("Warning:"))

    def test_nested_targets(self):
        config = _config(
            {
                'mapping': BASIC.model_dump(by_alias=True)['mapping'],
                'customFields': [
                    {'name': "author.kind", 'value': "human"},
                    {'name': "meta.channel", 'value': "web"},
                ],
            }
        )
        valid, messages = validate_message_format(config)
        self.assertFalse(valid)
        self.assertEqual(
            messages, ["Target 'author.kind' is nested inside target 'author'"]
        )

    def test_sibling_targets(self):
        config = _config(
            {
                'mapping': {
                    'role': {'source': "role", 'target': "author.role"},
                    'content': {'source': "content", 'target': "author.text"},
                }
            }
        )
        self.assertTrue(validate_message_format(config)[0])

    def test_indexed_target(self):
        config = _config(
            {
                'mapping': {
                    'role': {'source': "role", 'target': "parts[0].role"},
                    'content': {'source': "content", 'target': "text"},
                }
            }
        )
        valid, messages = validate_message_format(config)
        self.assertFalse(valid)
        self.assertIn("parts[0].role", messages[0])

    def test_validation_does_not_mutate(self):
        before = BASIC.model_dump()
        validate_message_format(BASIC)
        self.assertEqual(BASIC.model_dump(), before)


class TestSample(unittest.TestCase):
    def test_sample(self):
        out = sample_transformed_message(BASIC)
        self.assertEqual(
            out,
            {'author': "user", 'text': "Hello, this is a sample message"},
        )

    def test_sample_given(self):
        out = sample_transformed_message(
            BASIC, {'role': "assistant", 'content': "yo"}
        )
        self.assertEqual(out, {'author': "assistant", 'text': "yo"})


if __name__ == '__main__':
    unittest.main()
