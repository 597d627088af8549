def test_health(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_allocation_flow(client):
    response = client.post('/api/allocation/allocate', json={'pid': 1, 'size': 300, 'tag': 'red'})
    data = response.get_json()
    assert data['success']
    assert data['state']['blocks'][0]['owner_id'] == 1

    too_big = client.post('/api/allocation/allocate', json={'pid': 2, 'size': 20000}).get_json()
    assert not too_big['success']

    compare = client.post('/api/allocation/compare', json={'size': 100}).get_json()
    assert [r['algorithm'] for r in compare['comparison_results']] == \
        ['FIRST_FIT', 'BEST_FIT', 'WORST_FIT', 'NEXT_FIT']

    client.post('/api/allocation/deallocate', json={'pid': 1})
    state = client.get('/api/allocation/state').get_json()
    assert len(state['blocks']) == 1
    assert state['stats_history'][-1]['total_free_bytes'] == 10000


def test_allocation_bad_input(client):
    response = client.post('/api/allocation/allocate', json={'pid': 1})
    assert response.status_code == 400
    assert 'size' in response.get_json()['error']

    response = client.post('/api/allocation/algorithm', json={'algorithm': 'NOPE'})
    assert response.status_code == 400

    response = client.post('/api/allocation/allocate', json={'pid': 1, 'size': 'big'})
    assert response.status_code == 400


def test_paging_access(client):
    response = client.post('/api/paging/access', json={'virtual_address': 4100, 'pid': 1})
    data = response.get_json()
    assert response.status_code == 200
    assert data['result']['page_number'] == 1
    assert data['result']['page_fault']
    assert data['memory_state']['page_table']['1']['valid']

    response = client.post('/api/paging/access', json={'virtual_address': 65536})
    assert response.status_code == 400
    assert response.get_json()['error'].startswith('Invalid address')


def test_paging_configuration(client):
    response = client.post('/api/paging/config', json={'page_size': 1024})
    config = response.get_json()['memory_state']['config']
    assert (config['num_pages'], config['num_frames']) == (64, 32)

    response = client.post('/api/paging/config', json={'page_size': 1000})
    assert response.status_code == 400

    assert client.post('/api/paging/algorithm', json={'algorithm': 'Clock'}).status_code == 200
    assert client.post('/api/paging/tlb_policy', json={'policy': 'LRU'}).status_code == 200
    state = client.get('/api/paging/state').get_json()
    assert (state['replacement_algo'], state['tlb_policy']) == ('Clock', 'LRU')


def test_paging_random_access_and_reset(client):
    data = client.post('/api/paging/random_access', json={'count': 5}).get_json()
    assert len(data['access_results']) == 5
    assert data['memory_state']['stats']['total_accesses'] == 5

    data = client.post('/api/paging/reset').get_json()
    assert data['memory_state']['stats']['total_accesses'] == 0


def test_reference_string_routes(client):
    data = client.post('/api/paging/simulate', json={
        'references': [1, 2, 3, 4, 1, 2, 5], 'frames': 3, 'algorithm': 'Optimal'}).get_json()
    assert data['simulation']['page_faults'] == 5

    data = client.post('/api/paging/compare', json={
        'references': [1, 2, 3, 4, 1, 2, 5], 'frames': 3}).get_json()
    assert data['comparison_results']['FIFO']['page_faults'] == 7


def test_scheduler_flow(client):
    client.post('/api/scheduler/algorithm', json={'algorithm': 'RR'})
    client.post('/api/scheduler/quantum', json={'time_quantum': 4})
    for pid, burst in [(1, 10), (2, 5), (3, 8)]:
        assert client.post('/api/scheduler/process',
                           json={'pid': pid, 'burst_time': burst}).get_json()['success']

    state = client.post('/api/scheduler/tick', json={'count': 23}).get_json()['state']
    assert state['global_clock'] == 23
    assert {p['pid']: p['completion_time'] for p in state['completed_processes']} == \
        {1: 23, 2: 17, 3: 21}

    snapshot = client.post('/api/scheduler/snapshot').get_json()
    assert snapshot['success']
    assert snapshot['snapshot']['algorithm'] == 'RR'

    assert client.post('/api/scheduler/pause').get_json()['is_paused']
    client.post('/api/scheduler/reset')
    assert client.get('/api/scheduler/state').get_json()['global_clock'] == 0


def test_scheduler_arrival_time_from_json(client):
    response = client.post('/api/scheduler/process',
                           json={'pid': 1, 'burst_time': 2, 'arrival_time': '0'})
    assert response.get_json()['success']
    assert response.get_json()['state']['process_queue'][0]['arrival_time'] == 0

    response = client.post('/api/scheduler/process',
                           json={'pid': 2, 'burst_time': 2, 'arrival_time': 'soon'})
    assert response.status_code == 400

    response = client.post('/api/scheduler/process',
                           json={'pid': 3, 'burst_time': 2, 'arrival_time': 5})
    assert not response.get_json()['success']

    response = client.post('/api/scheduler/tick', json={'count': 2})
    assert response.status_code == 200
    assert response.get_json()['state']['completed_processes'][0]['pid'] == 1


def test_optimizer_routes(client):
    client.post('/api/allocation/algorithm', json={'algorithm': 'WORST_FIT'})
    data = client.post('/api/optimizer/analyze').get_json()
    assert data['recommendation']['algorithm'] == 'FIRST_FIT'

    assert client.post('/api/optimizer/apply').get_json()['success']
    assert client.get('/api/allocation/state').get_json()['algorithm'] == 'FIRST_FIT'


def test_sentinel_routes(client):
    client.post('/api/allocation/allocate', json={'pid': 4, 'size': 500})
    client.post('/api/sentinel/crash', json={'pid': 4})
    data = client.post('/api/sentinel/scan').get_json()
    assert data['leaks'][0]['pid'] == 4
    assert data['state']['status'] == 'ALERT'

    data = client.post('/api/sentinel/purge').get_json()
    assert data['purged'] == 1
    assert client.get('/api/allocation/state').get_json()['blocks'][0]['type'] == 'HOLE'


def test_unknown_route_is_404(client):
    assert client.get('/api/does-not-exist').status_code == 404
