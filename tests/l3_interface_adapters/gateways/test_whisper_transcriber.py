"""Tests for the whisper.cpp runtime gateway: patches pywhispercpp.model.Model."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

MODULE = 'voicenote_transcriber.l3_interface_adapters.gateways.whisper_transcriber'


def _segment(text: str) -> MagicMock:
    seg = MagicMock()
    seg.text = text
    return seg


@patch(f'{MODULE}.os.close')
@patch(f'{MODULE}.os.dup2')
@patch(f'{MODULE}.os.dup')
@patch(f'{MODULE}.os.open', return_value=99)
class TestSuppressCStdout:
    def test_redirects_and_restores_fds(self, mock_open, mock_dup, mock_dup2, mock_close):
        from voicenote_transcriber.l3_interface_adapters.gateways.whisper_transcriber import (
            _suppress_c_stdout,  # noqa: PLC2701 -- testing private helper
        )

        mock_dup.side_effect = [10, 11]  # saved stdout, saved stderr

        with _suppress_c_stdout():
            pass

        assert mock_dup2.call_count == 4  # 2 redirects in + 2 restores out
        assert mock_close.call_count == 3

    def test_restores_on_exception(self, mock_open, mock_dup, mock_dup2, mock_close):
        from voicenote_transcriber.l3_interface_adapters.gateways.whisper_transcriber import (
            _suppress_c_stdout,  # noqa: PLC2701 -- testing private helper
        )

        mock_dup.side_effect = [10, 11]
        with pytest.raises(ValueError, match='boom'):
            with _suppress_c_stdout():
                raise ValueError('boom')
        assert mock_dup2.call_count == 4


@patch(f'{MODULE}._suppress_c_stdout', MagicMock())
@patch(f'{MODULE}.Model')
class TestWhisperCppRuntime:
    def test_load_model_args(self, mock_model_cls):
        from voicenote_transcriber.l3_interface_adapters.gateways.whisper_transcriber import WhisperCppRuntime

        runtime = WhisperCppRuntime()
        runtime.load_model('/models/ggml-tiny.bin')

        mock_model_cls.assert_called_once_with('/models/ggml-tiny.bin', print_progress=False, print_realtime=False)
        assert runtime.loaded

    def test_thread_count_forwarded(self, mock_model_cls):
        from voicenote_transcriber.l3_interface_adapters.gateways.whisper_transcriber import WhisperCppRuntime

        WhisperCppRuntime(n_threads=2).load_model('/m.bin')
        assert mock_model_cls.call_args.kwargs['n_threads'] == 2

    def test_transcribe_joins_segments(self, mock_model_cls):
        from voicenote_transcriber.l3_interface_adapters.gateways.whisper_transcriber import WhisperCppRuntime

        mock_model_cls.return_value.transcribe.return_value = [
            _segment(' Take two '),
            _segment(''),
            _segment('tablets. '),
        ]
        runtime = WhisperCppRuntime()
        runtime.load_model('/m.bin')
        audio = np.zeros(16000, dtype=np.float32)

        assert runtime.transcribe(audio) == 'Take two tablets.'
        mock_model_cls.return_value.transcribe.assert_called_once_with(audio, language='auto')

    def test_transcribe_before_load_raises(self, mock_model_cls):
        from voicenote_transcriber.l3_interface_adapters.gateways.whisper_transcriber import WhisperCppRuntime

        with pytest.raises(RuntimeError, match='not loaded'):
            WhisperCppRuntime().transcribe(np.zeros(10, dtype=np.float32))

    def test_close_releases_model(self, mock_model_cls):
        from voicenote_transcriber.l3_interface_adapters.gateways.whisper_transcriber import WhisperCppRuntime

        runtime = WhisperCppRuntime()
        runtime.load_model('/m.bin')
        runtime.close()
        assert not runtime.loaded
        runtime.close()  # idempotent
