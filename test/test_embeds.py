#!/usr/bin/env python3
import unittest

from formhook.constants import DEFAULT_FOOTER, FIELD_VALUE_LIMIT, MAX_QUESTIONS
from formhook.embeds import build_discord_payload, build_embed, build_maintenance_payload
from formhook.models import Answer, ConditionalMention, FormConfig
from formhook.utils import parse_hex_color

USER = '123456789012345678'


def answers_of(*texts):
    return [Answer(f"q{i}", t) for i, t in enumerate(texts)]


class TestBuildEmbed(unittest.TestCase):
    def test_defaults(self):
        config = FormConfig(form_name='Stored name', color='', footer='')
        embed = build_embed(config, 'Application', answers_of('hello'), set())
        self.assertEqual(embed.title, '📋 Application')
        self.assertIsNone(embed.description)
        self.assertEqual(embed.color, 0x5865f2)
        self.assertEqual(embed.footer, DEFAULT_FOOTER)
        self.assertTrue(embed.timestamp)
        self.assertEqual(embed.fields[0].name, 'Question 1')
        self.assertEqual(embed.fields[0].value, 'hello')

    def test_title_falls_back_to_form_name(self):
        embed = build_embed(FormConfig(form_name='Stored name'), None, [], set())
        self.assertEqual(embed.title, '📋 Stored name')

    def test_overrides(self):
        config = FormConfig(title='Custom', description='Desc', color='#FF0000', footer='Foot')
        embed = build_embed(config, 'ignored', answers_of('x'), set())
        self.assertEqual((embed.title, embed.description, embed.color, embed.footer),
                         ('Custom', 'Desc', 0xFF0000, 'Foot'))

    def test_invalid_default_color_falls_back(self):
        self.assertEqual(parse_hex_color('red', default='blue'), 0x5865f2)
        self.assertEqual(parse_hex_color(None, default=None), 0x5865f2)
        self.assertEqual(parse_hex_color('00ff00', default='blue'), 0x00ff00)

    def test_invalid_color_uses_default(self):
        embed = build_embed(FormConfig(color='red'), 't', answers_of('x'), set())
        self.assertEqual(embed.color, 0x5865f2)

    def test_custom_titles_are_sparse(self):
        config = FormConfig(question_titles={1: 'Nickname'})
        embed = build_embed(config, 't', answers_of('a', 'b', 'c'), set())
        self.assertEqual([f.name for f in embed.fields], ['Question 1', 'Nickname', 'Question 3'])

    def test_empty_answers_are_skipped_but_keep_position(self):
        embed = build_embed(FormConfig(), 't', answers_of('', 'b'), set())
        self.assertEqual([(f.name, f.value) for f in embed.fields], [('Question 2', 'b')])

    def test_placeholder_when_nothing_to_show(self):
        for answers in ([], answers_of('', '')):
            embed = build_embed(FormConfig(), 't', answers, set())
            self.assertEqual(len(embed.fields), 1)
            self.assertEqual(embed.fields[0].value, 'No data to display')

    def test_long_value_is_truncated(self):
        embed = build_embed(FormConfig(), 't', answers_of('x' * 2000), set())
        value = embed.fields[0].value
        self.assertEqual(len(value), FIELD_VALUE_LIMIT)
        self.assertTrue(value.endswith('...'))

    def test_overflow_summary(self):
        answers = answers_of(*[f'answer {i}' for i in range(25)])
        embed = build_embed(FormConfig(), 't', answers, set())
        self.assertEqual(len(embed.fields), MAX_QUESTIONS + 1)
        self.assertIn('first 20 of 25', embed.fields[-1].value)
        self.assertEqual(embed.fields[MAX_QUESTIONS - 1].value, 'answer 19')

    def test_mention_field_rendered_as_user_tag(self):
        embed = build_embed(FormConfig(), 't', answers_of(f'my id is {USER}'), {0})
        self.assertEqual(embed.fields[0].value, f'<@{USER}>')

    def test_long_mention_field_is_truncated(self):
        embed = build_embed(FormConfig(), 't', answers_of('1' * 1100), {0})
        value = embed.fields[0].value
        self.assertLessEqual(len(value), FIELD_VALUE_LIMIT)
        self.assertTrue(value.endswith('...'))

    def test_mention_field_with_short_id_keeps_raw_text(self):
        embed = build_embed(FormConfig(), 't', answers_of('12345'), {0})
        self.assertEqual(embed.fields[0].value, '12345')

    def test_non_mention_field_keeps_raw_id(self):
        embed = build_embed(FormConfig(), 't', answers_of('x', USER), {0})
        self.assertEqual(embed.fields[1].value, USER)


class TestBuildPayload(unittest.TestCase):
    def test_user_mention_in_content_and_embed(self):
        payload = build_discord_payload(FormConfig(mentions=''), 'Form', answers_of(USER))
        self.assertEqual(payload['content'], f'<@{USER}>')
        self.assertEqual(payload['embeds'][0]['fields'][0]['value'], f'<@{USER}>')

    def test_content_key_omitted_without_mentions(self):
        config = FormConfig(mentions='', conditional_mentions=[ConditionalMention(0, 'Yes', '1' * 18)])
        payload = build_discord_payload(config, 'Form', answers_of('No', 'plain'))
        self.assertNotIn('content', payload)
        self.assertEqual(len(payload['embeds']), 1)
        self.assertNotIn('description', payload['embeds'][0])

    def test_maintenance_payload(self):
        payload = build_maintenance_payload('Down at 10pm')
        embed = payload['embeds'][0]
        self.assertEqual(embed['description'], 'Down at 10pm')
        self.assertEqual(embed['color'], 16776960)
        self.assertNotIn('content', payload)


if __name__ == '__main__':
    unittest.main()
