"""Test request template builder"""

import copy
import unittest

from madapt.engine.template import (
    TemplateVariables,
    build_body,
    find_placeholders,
)
from madapt.utils.logging import LoglistLogger


def _variables(**kwargs) -> TemplateVariables:
    values = {
        'content': "hi",
        'conversation_id': "conv-1",
        'time': "2024-01-02T03:04:05.000Z",
        'user': "u-1",
    }
    values.update(kwargs)
    return TemplateVariables(**values)


class TestTemplateVariables(unittest.TestCase):
    def test_default_messages(self):
        variables = TemplateVariables(content="hello")
        self.assertEqual(
            variables.messages, [{'role': "user", 'content': "hello"}]
        )

    def test_defaults_populated(self):
        variables = TemplateVariables(content="hello")
        self.assertTrue(variables.conversation_id)
        self.assertTrue(variables.time.endswith("Z"))

    def test_given_messages_kept(self):
        history = [
            {'role': "user", 'content': "a"},
            {'role': "assistant", 'content': "b"},
        ]
        variables = TemplateVariables(messages=history, content="a")
        self.assertEqual(variables.messages, history)


class TestBuildBody(unittest.TestCase):
    def test_exact_placeholder_keeps_type(self):
        body = build_body(
            {'messages': "{{messages}}", 'q': "{{ content }}"},
            _variables(),
        )
        self.assertEqual(
            body['messages'], [{'role': "user", 'content': "hi"}]
        )
        self.assertEqual(body['q'], "hi")

    def test_inline_placeholder(self):
        body = build_body(
            {'text': "User {{user}} says: {{content}}"}, _variables()
        )
        self.assertEqual(body['text'], "User u-1 says: hi")

    def test_inline_complex_value_is_json(self):
        body = build_body({'text': "m={{messages}}"}, _variables())
        self.assertEqual(
            body['text'], 'm=[{"role":"user","content":"hi"}]'
        )

    def test_legacy_syntax(self):
        body = build_body(
            {'id': "${conversation_id}", 'msg': "at ${time}"},
            _variables(),
        )
        self.assertEqual(body['id'], "conv-1")
        self.assertEqual(body['msg'], "at 2024-01-02T03:04:05.000Z")

    def test_nested_path(self):
        body = build_body(
            {'first': "{{messages[0].content}}"}, _variables()
        )
        self.assertEqual(body['first'], "hi")

    def test_structure_preserved(self):
        template = {
            'model': "gpt-4o",
            'stream': True,
            'temperature': 0.2,
            'stop': None,
            'options': [1, "two", {'three': "{{content}}"}],
        }
        body = build_body(template, _variables())
        self.assertEqual(
            body,
            {
                'model': "gpt-4o",
                'stream': True,
                'temperature': 0.2,
                'stop': None,
                'options': [1, "two", {'three': "hi"}],
            },
        )

    def test_template_not_mutated(self):
        template = {'a': {'b': ["{{content}}"]}}
        original = copy.deepcopy(template)
        build_body(template, _variables())
        self.assertEqual(template, original)

    def test_unknown_placeholder_is_null(self):
        logger = LoglistLogger()
        body = build_body(
            {'x': "{{unknown}}", 'y': "a{{unknown}}b"},
            _variables(),
            logger=logger,
        )
        self.assertIsNone(body['x'])
        self.assertEqual(body['y'], "ab")
        self.assertEqual(logger.count_logs(), 2)
        self.assertEqual(logger.count_logs(level=1), 0)

    def test_idempotent(self):
        template = {
            'messages': "{{messages}}",
            'meta': {'user': "{{user}}", 'at': "{{time}}"},
        }
        variables = _variables()
        once = build_body(template, variables)
        self.assertEqual(build_body(once, variables), once)

    def test_plain_dict_variables(self):
        body = build_body({'q': "{{content}}"}, {'content': "x"})
        self.assertEqual(body, {'q': "x"})


class TestFindPlaceholders(unittest.TestCase):
    def test_find(self):
        template = {
            'a': "{{content}}",
            'b': ["${user}", "x {{content}} {{messages[0].role}}"],
            'c': 3,
        }
        self.assertEqual(
            find_placeholders(template),
            ['content', 'user', 'messages[0].role'],
        )


if __name__ == '__main__':
    unittest.main()
