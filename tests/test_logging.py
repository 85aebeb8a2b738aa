import json
import logging
import unittest


class TestLogging(unittest.TestCase):
    def setUp(self):
        for handler in logging.root.handlers[:]:
            logging.root.removeHandler(handler)

    def test_configure_logging_sets_level(self):
        # Defer import to avoid side effects and ensure package is importable from source
        from devflow_api.logging import configure_logging

        configure_logging(level=logging.DEBUG)
        root = logging.getLogger()
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(logging.getLogger('sqlalchemy.engine').level, logging.INFO)

    def test_component_loggers_follow_level(self):
        from devflow_api.logging import configure_logging

        configure_logging(level=logging.WARNING)
        self.assertEqual(logging.getLogger('devflow_api.traceability.service').level, logging.WARNING)
        self.assertEqual(logging.getLogger('sqlalchemy.engine').level, logging.WARNING)

    def test_structured_formatter_includes_context(self):
        from devflow_api.logging import StructuredFormatter

        record = logging.LogRecord(
            name='devflow_api.traceability.service',
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg='Validated step transition',
            args=(),
            exc_info=None,
        )
        record.item_id = 'story-1'
        record.next_step = 'design'

        entry = json.loads(StructuredFormatter().format(record))
        self.assertEqual(entry['message'], 'Validated step transition')
        self.assertEqual(entry['level'], 'INFO')
        self.assertEqual(entry['item_id'], 'story-1')
        self.assertEqual(entry['next_step'], 'design')
        self.assertNotIn('project_id', entry)

    def test_log_traceability_operation_attaches_ids(self):
        from devflow_api.logging import get_traceability_logger, log_traceability_operation

        logger = get_traceability_logger('repository')
        self.assertEqual(logger.name, 'devflow_api.traceability.repository')

        with self.assertLogs(logger, level='INFO') as captured:
            log_traceability_operation(logger, 'Project completeness computed', project_id='p1', gaps=3)

        record = captured.records[0]
        self.assertEqual(record.project_id, 'p1')
        self.assertEqual(record.gaps, 3)
        self.assertFalse(hasattr(record, 'story_id'))


if __name__ == "__main__":
    unittest.main()
