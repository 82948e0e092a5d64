"""
Brief: Tests for sandboxdns.resolvconf parsing, filtering and building.

Inputs:
  - None

Outputs:
  - None
"""

from sandboxdns import resolvconf

SAMPLE = (
    b"# generated by dhcp\n"
    b"nameserver 127.0.0.53\n"
    b"nameserver 8.8.8.8 # google\n"
    b"nameserver 2001:db8::1\n"
    b"nameserver fe80::1%eth0\n"
    b"nameserver not-an-ip\n"
    b"search a.example b.example\n"
    b"options ndots:2 timeout:1\n"
)


def test_get_nameservers_filters_by_family():
    """
    Brief: get_nameservers honours the family filter and skips malformed lines.

    Inputs:
      - SAMPLE content with IPv4, IPv6, scoped IPv6 and invalid entries

    Outputs:
      - None: asserts per-family lists
    """
    assert resolvconf.get_nameservers(SAMPLE, resolvconf.IPV4) == [
        "127.0.0.53",
        "8.8.8.8",
    ]
    assert resolvconf.get_nameservers(SAMPLE, resolvconf.IPV6) == [
        "2001:db8::1",
        "fe80::1%eth0",
    ]
    assert len(resolvconf.get_nameservers(SAMPLE, resolvconf.IP)) == 4


def test_get_search_and_options_use_last_line():
    """
    Brief: Search domains and options come from the last matching line.

    Inputs:
      - content with two search and two options lines

    Outputs:
      - None: asserts last-line values
    """
    content = b"search one\nsearch two three\noptions rotate\noptions ndots:1\n"
    assert resolvconf.get_search_domains(content) == ["two", "three"]
    assert resolvconf.get_options(content) == ["ndots:1"]
    assert resolvconf.get_search_domains(b"") == []
    assert resolvconf.get_options(b"nameserver 1.1.1.1\n") == []


def test_get_nameservers_as_cidr():
    """Brief: Nameservers are rendered as single-host CIDRs."""
    content = b"nameserver 10.0.0.1\nnameserver 2001:db8::1\n"
    assert resolvconf.get_nameservers_as_cidr(content) == [
        "10.0.0.1/32",
        "2001:db8::1/128",
    ]


def test_filter_removes_localhost_and_keeps_other_lines():
    """
    Brief: filter_resolv_dns drops loopback nameservers and keeps everything else verbatim.

    Inputs:
      - content mixing loopback, public and IPv6 nameservers

    Outputs:
      - None: asserts filtered content and fingerprint
    """
    content = (
        b"nameserver 127.0.0.1\n"
        b"nameserver ::1\n"
        b"nameserver 9.9.9.9\n"
        b"nameserver 2001:db8::53\n"
        b"search corp\n"
    )
    rc = resolvconf.filter_resolv_dns(content, True)
    assert rc.content == b"nameserver 9.9.9.9\nnameserver 2001:db8::53\nsearch corp\n"
    assert rc.hash == resolvconf.hash_data(rc.content)

    no_v6 = resolvconf.filter_resolv_dns(content, False)
    assert no_v6.content == b"nameserver 9.9.9.9\nsearch corp\n"


def test_filter_appends_defaults_when_nothing_left():
    """
    Brief: Defaults are appended when every nameserver was filtered out.

    Inputs:
      - content with only a loopback nameserver and no trailing newline

    Outputs:
      - None: asserts default nameservers per IPv6 setting
    """
    rc = resolvconf.filter_resolv_dns(b"nameserver 127.0.0.1\nsearch x", False)
    assert rc.content == b"search x\nnameserver 8.8.8.8\nnameserver 8.8.4.4\n"

    rc6 = resolvconf.filter_resolv_dns(b"", True)
    assert resolvconf.get_nameservers(rc6.content) == (
        resolvconf.DEFAULT_IPV4_DNS + resolvconf.DEFAULT_IPV6_DNS
    )


def test_filter_is_idempotent():
    """Brief: Filtering already filtered content returns identical bytes."""
    once = resolvconf.filter_resolv_dns(SAMPLE, True)
    twice = resolvconf.filter_resolv_dns(once.content, True)
    assert once == twice


def test_build_writes_content_and_hash(tmp_path):
    """
    Brief: build() writes resolv.conf and its .hash file together.

    Inputs:
      - tmp_path: destination directory

    Outputs:
      - None: asserts file contents and permissions
    """
    path = tmp_path / "resolv.conf"
    rc = resolvconf.build(
        str(path), ["127.0.0.11", "2001:db8::1"], ["svc.local"], ["ndots:0"]
    )
    assert path.read_bytes() == (
        b"search svc.local\n"
        b"nameserver 127.0.0.11\n"
        b"nameserver 2001:db8::1\n"
        b"options ndots:0\n"
    )
    assert rc.content == path.read_bytes()
    assert (tmp_path / "resolv.conf.hash").read_bytes() == rc.hash
    assert rc.hash.startswith(b"sha256:")


def test_build_skips_dot_search(tmp_path):
    """Brief: A lone "." search domain produces no search line."""
    path = tmp_path / "resolv.conf"
    rc = resolvconf.build(str(path), ["1.1.1.1"], ["."], [])
    assert rc.content == b"nameserver 1.1.1.1\n"


def test_get_specific_fingerprints_file(tmp_path):
    """Brief: get_specific returns content and matching fingerprint."""
    path = tmp_path / "resolv.conf"
    path.write_bytes(b"nameserver 1.1.1.1\n")
    rc = resolvconf.get_specific(str(path))
    assert rc.content == b"nameserver 1.1.1.1\n"
    assert rc.hash == resolvconf.hash_data(rc.content)


def test_path_prefers_systemd_upstream(tmp_path, monkeypatch):
    """
    Brief: path() switches to the systemd-resolved upstream file behind the stub.

    Inputs:
      - monkeypatched DEFAULT_PATH / ALTERNATE_PATH

    Outputs:
      - None: asserts selected path
    """
    default = tmp_path / "resolv.conf"
    alternate = tmp_path / "upstream.conf"
    default.write_bytes(b"nameserver 127.0.0.53\n")
    monkeypatch.setattr(resolvconf, "DEFAULT_PATH", str(default))
    monkeypatch.setattr(resolvconf, "ALTERNATE_PATH", str(alternate))

    assert resolvconf.path() == str(default)
    alternate.write_bytes(b"nameserver 10.0.0.1\n")
    assert resolvconf.path() == str(alternate)

    default.write_bytes(b"nameserver 10.0.0.2\n")
    assert resolvconf.path() == str(default)
