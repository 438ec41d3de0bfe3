import json

from alerts.stream import ChannelClosed


class RecordingChannel:
    """Channel stand-in that keeps every frame it is sent"""

    def __init__(self, fail=False):
        self.frames = []
        self.fail = fail
        self.closed = False

    def send(self, message):
        if self.fail or self.closed:
            raise ChannelClosed('gone')
        self.frames.append(message)

    def close(self):
        self.closed = True

    def events(self, name=None):
        parsed = []
        for frame in self.frames:
            event_line, data_line = frame.strip().split('\n')
            event = event_line[len('event: '):]
            if name is None or event == name:
                parsed.append((event, json.loads(data_line[len('data: '):])))
        return parsed


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
