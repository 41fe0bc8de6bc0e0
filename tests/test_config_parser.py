import pytest

from fictrac.config_parser import ConfigError, ConfigParser

SAMPLE = (
    "## special header\n"
    "# a comment\n"
    "% another comment\n"
    "src_fn      : video.avi\n"
    "vfov : 45.5\n"
    "x\n"
    "ab\n"
    "no colon on this line\n"
    "blank :\n"
    "do_display : y\n"
    "roi_c : { 0.1, -0.2, 0.97 }\n"
    "roi_circ : {1,2,3,4}\n"
    "roi_ignr : { { 10, 20, 30, 40 }, { 50, 60 } }\n"
    "crlf_key : value\r\n"
)

KEYS = {
    "src_fn", "vfov", "blank", "do_display",
    "roi_c", "roi_circ", "roi_ignr", "crlf_key",
}


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "config.txt"
    path.write_bytes(SAMPLE.encode())
    return path


@pytest.fixture
def parser(sample_file):
    return ConfigParser(str(sample_file))


def _parser_with(raw):
    cfg = ConfigParser()
    cfg.add("k", raw)
    return cfg


def test_read_collects_pairs_and_comments(sample_file):
    cfg = ConfigParser()
    count = cfg.read(str(sample_file))
    assert count == len(cfg)
    assert set(cfg) == KEYS
    assert cfg.comments == ["# a comment", "% another comment"]


def test_values(parser):
    assert parser.get("src_fn") == "video.avi"
    assert parser.get("blank") == ""
    assert parser.get("crlf_key") == "value"
    assert parser.get("missing") == ""
    assert parser.get_str("missing") is None
    assert parser.get_dbl("vfov") == 45.5
    assert parser.get_bool("do_display") is True


def test_vectors(parser):
    assert parser.get_vec_dbl("roi_c") == [0.1, -0.2, 0.97]
    assert parser.get_vec_int("roi_circ") == [1, 2, 3, 4]
    assert parser.get_vvec_int("roi_ignr") == [[10, 20, 30, 40], [50, 60]]


def test_missing_keys_return_none(parser):
    assert parser.get_int("missing") is None
    assert parser.get_bool("missing") is None
    assert parser.get_vec_int("missing") is None
    assert parser.get_vvec_int("missing") is None


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        ConfigParser(str(tmp_path / "nope.txt"))


def test_int_parsing_accepts_trailing_text():
    cfg = ConfigParser()
    cfg.add("n", "12abc")
    assert cfg.get_int("n") == 12


@pytest.mark.parametrize("raw", ["abc", "99999999999"])
def test_bad_int_raises(raw):
    cfg = _parser_with(raw)
    with pytest.raises(ConfigError):
        cfg.get_int("k")


@pytest.mark.parametrize("raw", ["nope", "1e999"])
def test_bad_dbl_raises(raw):
    cfg = _parser_with(raw)
    with pytest.raises(ConfigError):
        cfg.get_dbl("k")


def test_bad_bool_raises():
    cfg = _parser_with("maybe")
    with pytest.raises(ConfigError):
        cfg.get_bool("k")


def test_bad_vec_int_raises():
    cfg = _parser_with("{ 1, x, 3 }")
    with pytest.raises(ConfigError):
        cfg.get_vec_int("k")


def test_bad_vec_dbl_raises():
    cfg = _parser_with("{ 1.0, bad }")
    with pytest.raises(ConfigError):
        cfg.get_vec_dbl("k")


def test_bad_vvec_int_raises():
    cfg = _parser_with("{ { 1, q } }")
    with pytest.raises(ConfigError):
        cfg.get_vvec_int("k")


@pytest.mark.parametrize("raw, expected", [("Y", True), ("1", True), ("n", False), ("0", False)])
def test_bool_values(raw, expected):
    cfg = ConfigParser()
    cfg.add("flag", raw)
    assert cfg.get_bool("flag") is expected


def test_write_and_reread_round_trip(parser, tmp_path):
    parser.add("roi_r", 0.25)
    parser.add("c2a_t", [0.5, -1.5, 3.0])
    parser.add("roi_circ", [5, 6, 7])
    parser.add("roi_ignr", [[1, 2], [3, 4, 5]])
    parser.add("flag", False)
    out = tmp_path / "out.txt"
    nbytes = parser.write(str(out))
    assert nbytes == out.stat().st_size

    again = ConfigParser(str(out))
    assert again.get_dbl("roi_r") == 0.25
    assert again.get_vec_dbl("c2a_t") == [0.5, -1.5, 3.0]
    assert again.get_vec_int("roi_circ") == [5, 6, 7]
    assert again.get_vvec_int("roi_ignr") == [[1, 2], [3, 4, 5]]
    assert again.get_bool("flag") is False
    assert again.get("src_fn") == "video.avi"
    assert again.comments == parser.comments


def test_written_layout(parser, tmp_path):
    out = tmp_path / "out.txt"
    parser.write(str(out))
    lines = out.read_text().split("\n")
    assert lines[0].startswith("## FicTrac v2.1.2 config file (build date ")
    pair_lines = lines[1 : 1 + len(parser)]
    keys = [line.split(" : ", 1)[0].rstrip() for line in pair_lines]
    assert keys == sorted(KEYS)
    assert "src_fn           : video.avi" in pair_lines
    assert lines[1 + len(parser)] == ""
    assert lines[2 + len(parser) : 4 + len(parser)] == parser.comments


def test_write_defaults_to_read_file(parser, sample_file):
    parser.add("extra", "value")
    parser.write()
    assert ConfigParser(str(sample_file)).get("extra") == "value"


def test_write_without_name_raises():
    with pytest.raises(ConfigError):
        ConfigParser().write()


def test_print_all_lists_pairs(parser):
    listing = parser.print_all()
    assert "\tsrc_fn\t: video.avi\n" in listing
    assert listing.count("\n") == len(parser)