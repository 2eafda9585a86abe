import json

import pytest
import requests

from common.schema import City, CityResult, HubRecord, OutputFormat
from donkey.workflow import DonkeyHubWorkflow, dedupe_hubs, write_city_result
from tests.helpers import StubSession, make_response

GHENT_URL = "https://stables.donkey.bike/api/public/cities/223/hubs/"
AMSTERDAM_URL = "https://stables.donkey.bike/api/public/cities/5/hubs/"
KIEL_URL = "https://stables.donkey.bike/api/public/nearby?filter_type=account&account_id=866"


def hub(hub_id, name='hub', lon=3.7, lat=51.0):
    return HubRecord(id=hub_id, name=name, longitude=lon, latitude=lat)


def make_workflow(cities, tmp_path, session, **kwargs):
    return DonkeyHubWorkflow(cities, output_dir=tmp_path / 'hub-data',
                             request_delay=0, session=session, **kwargs)


def test_dedupe_keeps_first_occurrence_in_order():
    hubs = [hub(1, 'first'), hub(2), hub(1, 'second'), hub(3), hub(2)]
    unique = dedupe_hubs(hubs)
    assert [h.id for h in unique] == [1, 2, 3]
    assert unique[0].name == 'first'


def test_write_creates_directory_and_overwrites(tmp_path):
    city = City('ghent', (GHENT_URL,))
    out_dir = tmp_path / 'nested' / 'out'

    path = write_city_result(CityResult(city, [hub(1), hub(2)]), out_dir)
    assert path == out_dir / 'hubs-ghent.json'
    assert len(json.loads(path.read_text())['features']) == 2

    write_city_result(CityResult(city, []), out_dir)
    assert json.loads(path.read_text())['features'] == []


def test_write_array_format(tmp_path):
    city = City('ghent', (GHENT_URL,))
    path = write_city_result(CityResult(city, [hub(1, lon=3.72, lat=51.05)]), tmp_path,
                             OutputFormat.ARRAY)
    data = json.loads(path.read_text())
    assert isinstance(data, list)
    assert data[0]['id'] == 1
    assert (data[0]['longitude'], data[0]['latitude']) == (3.72, 51.05)


def test_ghent_end_to_end(tmp_path):
    session = StubSession({GHENT_URL: {
        'hubs': [{'id': 7, 'name': 'Central', 'latitude': 51.05, 'longitude': 3.72}],
    }})
    workflow = make_workflow([City('ghent', (GHENT_URL,))], tmp_path, session)
    workflow.run_full_workflow()

    data = json.loads((tmp_path / 'hub-data' / 'hubs-ghent.json').read_text())
    assert data['type'] == 'FeatureCollection'
    assert len(data['features']) == 1
    feature = data['features'][0]
    assert feature['properties']['id'] == 7
    assert feature['geometry'] == {'type': 'Point', 'coordinates': [3.72, 51.05]}
    assert data['metadata']['city'] == 'ghent'
    assert data['metadata']['total_hubs'] == 1
    assert data['metadata']['endpoints'] == [GHENT_URL]


def test_http_error_writes_empty_city_and_continues(tmp_path, caplog):
    session = StubSession({
        GHENT_URL: make_response(GHENT_URL, 500, text='Internal Server Error'),
        AMSTERDAM_URL: [{'id': 1, 'lat': 52.37, 'lng': 4.89}],
    })
    cities = [City('ghent', (GHENT_URL,)), City('amsterdam', (AMSTERDAM_URL,))]
    results = make_workflow(cities, tmp_path, session).run_full_workflow()

    assert [r.city.name for r in results] == ['ghent', 'amsterdam']
    assert results[0].failed_endpoints == [GHENT_URL]
    ghent = json.loads((tmp_path / 'hub-data' / 'hubs-ghent.json').read_text())
    assert ghent['features'] == []
    amsterdam = json.loads((tmp_path / 'hub-data' / 'hubs-amsterdam.json').read_text())
    assert amsterdam['metadata']['total_hubs'] == 1
    assert GHENT_URL in caplog.text
    assert 'HTTP 500' in caplog.text


def test_endpoints_merged_and_deduplicated_across_shapes(tmp_path):
    session = StubSession({
        KIEL_URL: {'stations': [{'id': 1, 'name': 'A', 'lat': 54.5, 'lng': 9.6},
                                {'id': 2, 'name': 'B', 'lat': 54.6, 'lng': 9.7}]},
        GHENT_URL: {'data': [{'id': 2, 'name': 'B again', 'lat': 0.5, 'lng': 0.5},
                             {'id': 3, 'name': 'C', 'lat': 54.7, 'lng': 9.8}]},
    })
    city = City('schlei-region', (KIEL_URL, GHENT_URL))
    result = make_workflow([city], tmp_path, session).process_city(city)

    assert [h.id for h in result.hubs] == [1, 2, 3]
    assert result.hubs[1].name == 'B'
    assert [c['url'] for c in session.calls] == [KIEL_URL, GHENT_URL]
    assert session.calls[0]['headers']['account_id'] == '866'


def test_timeout_endpoint_contributes_nothing(tmp_path):
    session = StubSession({
        KIEL_URL: requests.exceptions.ReadTimeout('timed out'),
        GHENT_URL: [{'id': 5, 'lat': 51.0, 'lng': 3.7}],
    })
    city = City('mixed', (KIEL_URL, GHENT_URL))
    result = make_workflow([city], tmp_path, session).process_city(city)
    assert [h.id for h in result.hubs] == [5]
    assert result.failed_endpoints == [KIEL_URL]


def test_rerun_is_byte_identical_apart_from_timestamp(tmp_path):
    payload = {'results': [{'id': 'b', 'name': 'Gare', 'lat': '46.2', 'lon': '6.14',
                            'capacity': 8, 'hub_type': 'dock'},
                           {'id': 'a', 'title': 'Lac', 'latitude': 46.21, 'longitude': 6.15}]}
    city = City('geneva', (GHENT_URL,))
    path = tmp_path / 'hub-data' / 'hubs-geneva.json'

    contents = []
    for _ in range(2):
        make_workflow([city], tmp_path, StubSession({GHENT_URL: payload})).run_full_workflow()
        data = json.loads(path.read_text(encoding='utf-8'))
        data['metadata'].pop('generated_at')
        contents.append(json.dumps(data, indent=2))
        raw_lines = [line for line in path.read_text(encoding='utf-8').splitlines()
                     if 'generated_at' not in line]
        contents.append('\n'.join(raw_lines))

    assert contents[0] == contents[2]
    assert contents[1] == contents[3]


def test_write_failure_is_not_fatal(tmp_path):
    session = StubSession({GHENT_URL: [], AMSTERDAM_URL: []})
    cities = [City('ghent', (GHENT_URL,)), City('amsterdam', (AMSTERDAM_URL,))]
    workflow = make_workflow(cities, tmp_path, session)
    workflow.prepare_output_dir()
    (tmp_path / 'hub-data' / 'hubs-ghent.json').mkdir()

    results = workflow.run_full_workflow()
    assert [r.city.name for r in results] == ['amsterdam']


def test_export_to_dataframe(tmp_path):
    session = StubSession({GHENT_URL: [{'id': 1, 'lat': 51.0, 'lng': 3.7, 'capacity': 4}]})
    workflow = make_workflow([City('ghent', (GHENT_URL,))], tmp_path, session)
    workflow.run_full_workflow()

    df = workflow.export_to_dataframe()
    assert len(df) == 1
    row = df.iloc[0]
    assert row['registry_city'] == 'ghent'
    assert row['capacity'] == 4
    assert row['longitude'] == 3.7


def test_delay_only_between_cities(tmp_path, monkeypatch):
    sleeps = []
    monkeypatch.setattr('donkey.workflow.time.sleep', sleeps.append)
    urls = [f"https://mock.donkey/api/public/cities/{n}/hubs/" for n in (1, 2, 3)]
    cities = [City(f'city-{n}', (url,)) for n, url in enumerate(urls)]
    workflow = DonkeyHubWorkflow(cities, output_dir=tmp_path / 'hub-data', request_delay=0.2,
                                 session=StubSession({url: [] for url in urls}))

    workflow.run_full_workflow()
    assert sleeps == [0.2, 0.2]


def test_hubs_without_id_collapse_to_first(tmp_path):
    session = StubSession({GHENT_URL: [
        {'name': 'first', 'lat': 51.0, 'lng': 3.7},
        {'id': 4, 'lat': 51.1, 'lng': 3.8},
        {'name': 'second', 'lat': 51.2, 'lng': 3.9},
    ]})
    city = City('ghent', (GHENT_URL,))
    result = make_workflow([city], tmp_path, session).process_city(city)
    assert [(h.id, h.name) for h in result.hubs] == [(None, 'first'), (4, 'Hub 4')]


def test_error_body_truncated_in_log_only(tmp_path, caplog):
    body = 'y' * 2000
    session = StubSession({GHENT_URL: make_response(GHENT_URL, 500, text=body)})
    city = City('ghent', (GHENT_URL,))
    make_workflow([city], tmp_path, session).process_city(city)
    assert 'y' * 400 in caplog.text
    assert body not in caplog.text


def test_output_path_that_is_a_file_is_fatal(tmp_path):
    blocker = tmp_path / 'hub-data'
    blocker.write_text('not a directory')
    session = StubSession({GHENT_URL: []})
    workflow = make_workflow([City('ghent', (GHENT_URL,))], tmp_path, session)

    with pytest.raises(NotADirectoryError):
        workflow.run_full_workflow()
    assert session.calls == []
