import argparse
import os
import sys
import unittest
from io import StringIO
from unittest.mock import patch

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

from schemaguard.schemaguard import create_subparsers, load_commands, main


def get_json(name):
    """Provides the path of a file in the jsons fixture directory."""
    return os.path.join(os.path.dirname(__file__), 'jsons', name)


class TestMain(unittest.TestCase):

    @patch('argparse.ArgumentParser.parse_args', return_value=argparse.Namespace(command=None, version=False))
    def test_main_no_command(self, mock_parse_args):
        """Test main function with no command."""
        with patch('sys.stdout', new_callable=StringIO) as stdout:
            main()
        self.assertIn("usage:", stdout.getvalue())

    def test_version(self):
        """Test the version flag."""
        with patch('sys.argv', ['schemaguard', '--version']), \
                patch('sys.stdout', new_callable=StringIO) as stdout:
            main()
        self.assertTrue(stdout.getvalue().startswith("schemaguard "))

    def test_commands_are_complete(self):
        """Every command maps its function arguments to parser arguments."""
        parser = argparse.ArgumentParser()
        commands = load_commands()
        create_subparsers(parser.add_subparsers(dest='command'), commands)
        self.assertEqual({cmd['command'] for cmd in commands}, {'validate', 'check'})
        args = parser.parse_args(['validate', 'a.json', 'b.jsonl', '--schema', 's.json'])
        self.assertEqual(args.input, ['a.json', 'b.jsonl'])
        self.assertFalse(args.quiet)
        for command in commands:
            for val in command['function']['args'].values():
                self.assertTrue(val.startswith('args.'))

    def test_validate_command(self):
        """Test validating a valid document."""
        argv = ['schemaguard', 'validate', get_json('person.json'), '--schema', get_json('person.schema.json')]
        with patch('sys.argv', argv), patch('sys.stdout', new_callable=StringIO) as stdout:
            main()
        self.assertIn("1/1 instances valid", stdout.getvalue())

    def test_validate_command_invalid(self):
        """Test that invalid documents make the command exit with 1."""
        argv = ['schemaguard', 'validate', get_json('persons.jsonl'), '--schema', get_json('person.schema.json'),
                '--quiet']
        with patch('sys.argv', argv), patch('sys.stdout', new_callable=StringIO):
            with self.assertRaises(SystemExit) as ctx:
                main()
        self.assertEqual(ctx.exception.code, 1)

    def test_validate_requires_schema(self):
        """Test that the schema option is mandatory."""
        with patch('sys.argv', ['schemaguard', 'validate', 'a.json']), patch('sys.stderr', new_callable=StringIO):
            with self.assertRaises(SystemExit) as ctx:
                main()
        self.assertEqual(ctx.exception.code, 2)

    def test_check_command(self):
        """Test checking a broken schema."""
        with patch('sys.argv', ['schemaguard', 'check', get_json('broken.schema.json')]), \
                patch('sys.stdout', new_callable=StringIO) as stdout:
            with self.assertRaises(SystemExit) as ctx:
                main()
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("✗ Invalid schema", stdout.getvalue())

    def test_missing_file_reports_error(self):
        """Test that unexpected failures are printed and exit with 1."""
        argv = ['schemaguard', 'check', os.path.join(os.path.dirname(__file__), 'jsons', 'nope.json')]
        with patch('sys.argv', argv), patch('sys.stdout', new_callable=StringIO) as stdout:
            with self.assertRaises(SystemExit) as ctx:
                main()
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("Error: ", stdout.getvalue())


if __name__ == '__main__':
    unittest.main()
