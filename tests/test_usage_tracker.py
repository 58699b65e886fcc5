from newspulse.backend.monitoring.usage_tracker import AIUsageTracker


class TestAIUsageTracker:
    def test_summary_counts_calls_and_cache_hits(self):
        tracker = AIUsageTracker()
        tracker.record_call("tts-model", "tts", 1.5)
        tracker.record_call("tts-model", "tts", 0.5, success=False, error_message="429 RESOURCE_EXHAUSTED")
        tracker.record_call("text-model", "translation", 0.5)
        tracker.record_cache_hit("tts")

        summary = tracker.get_usage_summary()

        assert summary.total_calls == 3
        assert summary.failed_calls == 1
        assert summary.quota_errors == 1
        assert summary.calls_by_operation == {"tts": 2, "translation": 1}
        assert summary.cache_hits == 1
        assert summary.cache_hit_rate == 0.25
        assert summary.average_processing_time == 1.0

    def test_empty_summary(self):
        summary = AIUsageTracker().get_usage_summary()

        assert summary.total_calls == 0
        assert summary.cache_hit_rate == 0.0
