import io
import json
from datetime import timedelta

import pytest

from i3weather.cli import Runtime, build_parser, check_config, key_help, main, run_protocol
from i3weather.config import Config, config_path, load_config_file
from i3weather.levels import ICON_EYE, ICON_SATELLITE, Spot
from i3weather.notify import Debouncer
from i3weather.polling import LOADING, Failure, Mailbox, Success
from i3weather.render import new_properties, render
from i3weather.weather import CurrentWeather, weather_properties

FORMAT = "{city} {temp}{temp_unit}{iss_space}{iss_icon}{iss}"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    monkeypatch.delenv("OWM_API_KEY", raising=False)


class _FakeSource:
    def __init__(self):
        self.mailbox = Mailbox()
        self.started = False

    def start(self):
        self.started = True


class _FakeSink:
    def __init__(self):
        self.calls = []

    def __call__(self, summary, body, **kwargs):
        self.calls.append(summary)
        return True


@pytest.fixture
def weather(raw_weather):
    return CurrentWeather.from_json(raw_weather)


@pytest.fixture
def runtime():
    spots = _FakeSource()
    made = []

    def factory(coord):
        made.append(coord)
        return spots

    rt = Runtime(Config(format=FORMAT, level="rise", blink=True), _FakeSource(), factory,
                 Debouncer(sink=_FakeSink()))
    rt.made = made
    rt.fake_spots = spots
    return rt


def test_loading_until_weather_arrives(runtime, now):
    runtime.weather_source.mailbox.put(Failure(LOADING))
    assert runtime.step(now) == LOADING
    assert runtime.spot_source is None


def test_weather_starts_spotting(runtime, weather, now):
    runtime.weather_source.mailbox.put(Success(weather))
    assert runtime.step(now) == "Berlin 18°C"
    assert runtime.made == [weather.coord]
    assert runtime.fake_spots.started
    # a second weather update does not start another poller
    runtime.weather_source.mailbox.put(Success(weather))
    runtime.step(now)
    assert len(runtime.made) == 1


def test_errors_replace_text_except_spot_loading(runtime, weather, now):
    runtime.weather_source.mailbox.put(Success(weather))
    runtime.step(now)
    runtime.fake_spots.mailbox.put(Failure(LOADING))
    assert runtime.step(now) == "Berlin 18°C"
    runtime.fake_spots.mailbox.put(Failure("[503]"))
    assert runtime.step(now) == "[503]"
    # still the error until a fresh update arrives
    assert runtime.step(now) == "[503]"
    runtime.fake_spots.mailbox.put(Success([]))
    assert runtime.step(now) == "Berlin 18°C"
    runtime.weather_source.mailbox.put(Failure("[offline]"))
    assert runtime.step(now) == "[offline]"


def test_spotting_text_and_blink(runtime, weather, now):
    runtime.weather_source.mailbox.put(Success(weather))
    runtime.step(now)
    runtime.fake_spots.mailbox.put(Success([Spot(now - timedelta(seconds=5), timedelta(minutes=5))]))
    first = runtime.step(now)
    second = runtime.step(now)
    # the weather-only step already flipped the blink phase once
    assert first == f"Berlin 18°C {ICON_EYE}+05"
    assert second == f"Berlin 18°C {ICON_SATELLITE}+05"
    assert runtime.debouncer.sink.calls == ["NOW: ISS spotting"]


def test_soon_countdown_notifies_once(runtime, weather, now):
    runtime.weather_source.mailbox.put(Success(weather))
    runtime.fake_spots.mailbox.put(Success([Spot(now + timedelta(minutes=5), timedelta(minutes=5))]))
    runtime.step(now)
    text = runtime.step(now)
    assert text == f"Berlin 18°C {ICON_SATELLITE}-05:00"
    assert runtime.debouncer.sink.calls == ["Upcoming: ISS spotting"]


def test_cloudy_sky_hides_spotting(runtime, raw_weather, now):
    raw_weather["clouds"]["all"] = 90
    runtime.weather_source.mailbox.put(Success(CurrentWeather.from_json(raw_weather)))
    runtime.step(now)
    runtime.fake_spots.mailbox.put(Success([Spot(now + timedelta(minutes=5), timedelta(minutes=5))]))
    assert runtime.step(now) == "Berlin 18°C"
    assert runtime.props["{iss}"] == ""


def test_run_protocol_wraps_stream(runtime, weather):
    runtime.weather_source.mailbox.put(Success(weather))
    inp = io.StringIO('{"version":1}\n[\n[{"name":"load","markup":"none","full_text":"0.1"}]\n'
                      ',[{"name":"load","markup":"none","full_text":"0.2"}]\n')
    out = io.StringIO()
    run_protocol(runtime, inp, out)
    lines = out.getvalue().splitlines()
    assert lines[:2] == ['{"version":1}', "["]
    assert json.loads(lines[2])[0] == {"name": "i3weather", "markup": "none",
                                       "full_text": "Berlin 18°C"}
    assert lines[3].startswith(",[")
    assert len(lines) == 4


def test_key_help_renders_without_braces(weather):
    props = new_properties()
    props.update(weather_properties(weather, "metric"))
    text = render(key_help(), props)
    assert "{" not in text and "}" not in text


def test_parser_defaults():
    args = build_parser().parse_args([])
    config = Config.from_namespace(args)
    assert config.position == 0 and not config.reverse
    assert config.max_level.name == "SOON"
    assert config.poll_interval == 600
    assert config.soon_threshold == timedelta(minutes=15)


def test_parser_rejects_bad_values():
    parser = build_parser()
    for argv in (["--level", "never"], ["--units", "furlongs"], ["--position", "-1"],
                 ["--poll", "0"], ["--poll", "-1"], ["--predictions", "0"],
                 ["--soon", "-5"], ["--cloudiness", "-1"], ["--cloudiness", "101"]):
        with pytest.raises(SystemExit):
            parser.parse_args(argv)


def test_apikey_from_environment(monkeypatch):
    monkeypatch.setenv("OWM_API_KEY", "from-env")
    assert Config.from_namespace(build_parser().parse_args([])).apikey == "from-env"
    assert Config.from_namespace(build_parser().parse_args(["-k", "flag"])).apikey == "flag"


def test_config_file(tmp_path, monkeypatch, caplog):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    path = config_path()
    assert path == tmp_path / "i3weather" / "config.toml"
    path.parent.mkdir()
    path.write_text(
        'location = "Hamburg,DE"\n'
        "notify = true\n"
        "soon = 20\n"
        'position = "two"\n'
        "bogus = 1\n"
    )
    assert load_config_file() == {"location": "Hamburg,DE", "notify": True, "soon": 20}
    assert "bogus" in caplog.text
    config = Config.from_namespace(build_parser().parse_args(["--soon", "5"]))
    assert config.location == "Hamburg,DE"
    assert config.notify
    assert config.soon == 5


def test_broken_config_file_is_ignored(tmp_path, caplog):
    path = tmp_path / "config.toml"
    path.write_text("location = \n")
    assert load_config_file(path) == {}
    assert "Ignoring config file" in caplog.text
    assert load_config_file(tmp_path / "missing.toml") == {}


def test_main_rejects_bad_level_from_file(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    (tmp_path / "i3weather").mkdir()
    (tmp_path / "i3weather" / "config.toml").write_text('level = "never"\n')
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 2


@pytest.mark.parametrize("line", ["poll = 0", "poll = -1", "predictions = 0",
                                  "soon = -1", "cloudiness = 150", "position = -2"])
def test_main_rejects_bad_numbers_from_file(tmp_path, monkeypatch, line):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    (tmp_path / "i3weather").mkdir()
    (tmp_path / "i3weather" / "config.toml").write_text(line + "\n")
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 2


def test_check_config_accepts_defaults():
    assert check_config(Config()) is None
    assert "poll" in check_config(Config(poll=0))
