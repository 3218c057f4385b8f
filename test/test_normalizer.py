#!/usr/bin/env python3
import json
import unittest

from formhook.models import Answer
from formhook.normalizer import extract_submission, parse_form_answers


class TestParseFormAnswers(unittest.TestCase):
    def test_canonical_list_passes_through(self):
        answers = parse_form_answers([
            {'question_id': 'a', 'text': 'one'},
            {'value': 2},
            {'answer': 'three'},
            {},
        ])
        self.assertEqual(answers, [
            Answer('a', 'one'),
            Answer('q1', '2'),
            Answer('q2', 'three'),
            Answer('q3', ''),
        ])

    def test_json_string_is_decoded_once(self):
        raw = json.dumps([{'question_id': 'q0', 'text': 'hello'}])
        self.assertEqual(parse_form_answers(raw), [Answer('q0', 'hello')])

    def test_invalid_json_string_becomes_single_answer(self):
        self.assertEqual(parse_form_answers('just text'), [Answer('q0', 'just text')])

    def test_provider_envelope(self):
        raw = {
            'answer': {
                'data': {
                    'discord': {'value': '123456789012345678'},
                    'skipped': {'value': None},
                    'missing': {},
                    'choices': {'value': [{'text': 'Red'}, {'key': 'x'}, 'Blue']},
                    'nested': {'value': {'a': 1}},
                    'number': {'value': 42},
                }
            }
        }
        answers = parse_form_answers(raw)
        self.assertEqual([a.question_id for a in answers], ['discord', 'choices', 'nested', 'number'])
        self.assertEqual(answers[0].text, '123456789012345678')
        self.assertEqual(answers[1].text, 'Red, {"key": "x"}, Blue')
        self.assertEqual(answers[2].text, '{"a": 1}')
        self.assertEqual(answers[3].text, '42')

    def test_envelope_inside_json_string(self):
        raw = json.dumps({'answer': {'data': {'f1': {'value': 'yes'}}}})
        self.assertEqual(parse_form_answers(raw), [Answer('f1', 'yes')])

    def test_flat_object_skips_envelope_keys(self):
        raw = {'formId': 'x', 'form_title': 'T', 'name': 'Ann', 'age': 30, 'answers': 'ignored'}
        self.assertEqual(parse_form_answers(raw), [Answer('name', 'Ann'), Answer('age', '30')])

    def test_unsupported_shapes_degrade_to_empty(self):
        for raw in (None, '', 0, 12.5, [], {}, '5'):
            self.assertEqual(parse_form_answers(raw), [], f"entrada {raw!r}")

    def test_canonical_round_trip_is_stable(self):
        original = [{'question_id': 'q0', 'text': 'a'}, {'question_id': 'q1', 'text': 'b'}]
        first = parse_form_answers(original)
        second = parse_form_answers(json.dumps([a.to_dict() for a in first]))
        self.assertEqual(first, second)


class TestExtractSubmission(unittest.TestCase):
    def test_jsonrpc_envelope_with_encoded_answers(self):
        body = {
            'jsonrpc': '2.0',
            'method': 'submit',
            'params': {
                'formId': 'form-1',
                'formTitle': 'Application',
                'answers': json.dumps([{'text': 'hi'}]),
            },
            'id': 7,
        }
        submission = extract_submission(body)
        self.assertTrue(submission.is_jsonrpc)
        self.assertEqual(submission.rpc_id, 7)
        self.assertEqual(submission.form_id, 'form-1')
        self.assertEqual(submission.form_title, 'Application')
        self.assertEqual(submission.answers, [Answer('q0', 'hi')])

    def test_form_envelope(self):
        body = {'form': {'id': 'f', 'title': 'Title'}, 'answers': [{'question_id': 'q1', 'text': 'x'}]}
        submission = extract_submission(body)
        self.assertFalse(submission.is_jsonrpc)
        self.assertEqual((submission.form_id, submission.form_title), ('f', 'Title'))
        self.assertEqual(submission.answers, [Answer('q1', 'x')])

    def test_flat_body_without_answers_uses_remaining_keys(self):
        submission = extract_submission({'form_id': 'f', 'formTitle': 'T', 'nick': 'Bob', 'server': '3'})
        self.assertEqual(submission.form_id, 'f')
        self.assertEqual(submission.answers, [Answer('nick', 'Bob'), Answer('server', '3')])

    def test_flat_body_with_answers(self):
        submission = extract_submission({'formId': 'f', 'answers': {'q': 'v'}})
        self.assertEqual(submission.answers, [Answer('q', 'v')])

    def test_non_object_body(self):
        self.assertIsNone(extract_submission(['a']))
        self.assertIsNone(extract_submission('text'))


if __name__ == '__main__':
    unittest.main()
