import json
import threading
import time
import unittest

import requests

from nft_snapshot.models import NFTRecord
from nft_snapshot.processors import ContentResolver, ResolvedContent, is_valid_cid

GATEWAY = 'https://gw.test/ipfs/'
CID_V1 = 'bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi'
CID_V0 = 'QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG'
PNG = b'\x89PNG\r\n\x1a\n' + b'\x00' * 16


class FakeResponse:

    def __init__(self, status=200, content_type=None, body=b'', location=None, url=''):
        self.status_code = status
        self.headers = {}
        if content_type is not None:
            self.headers['Content-Type'] = content_type
        if location is not None:
            self.headers['Location'] = location
        self.content = body if isinstance(body, bytes) else json.dumps(body).encode()
        self.url = url
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f'{self.status_code} Error', response=self)

    def close(self):
        self.closed = True


class FakeSession:
    """Maps URL -> FakeResponse (or exception); records every GET."""

    def __init__(self, routes):
        self.routes = routes
        self.requested = []

    def get(self, url, **kwargs):
        self.requested.append((url, kwargs))
        response = self.routes[url]
        if isinstance(response, Exception):
            raise response
        response.url = url
        return response


def resolver(routes, **kwargs):
    session = FakeSession(routes)
    return ContentResolver(gateway=GATEWAY, timeout=3, session=session, **kwargs), session


class TestClassify(unittest.TestCase):

    def setUp(self):
        self.resolver, _ = resolver({})

    def test_cid_v1(self):
        self.assertEqual(self.resolver.classify(f'ipfs://{CID_V1}'), GATEWAY + CID_V1)

    def test_cid_v0(self):
        self.assertEqual(self.resolver.classify(f'ipfs://{CID_V0}'), GATEWAY + CID_V0)

    def test_path_after_cid_is_kept(self):
        self.assertEqual(self.resolver.classify(f'ipfs://{CID_V0}/7.json'), f'{GATEWAY}{CID_V0}/7.json')
        self.assertEqual(self.resolver.classify(f'ipfs://ipfs/{CID_V1}'), GATEWAY + CID_V1)

    def test_cid_v0_with_ambiguous_characters_rejected(self):
        self.assertIsNone(self.resolver.classify('ipfs://Qm0OIlabc'))
        self.assertIsNone(self.resolver.classify('ipfs://QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbd0'))

    def test_unknown_cid_shape_rejected(self):
        self.assertIsNone(self.resolver.classify('ipfs://zdj7WWeQ43G6JJvLWQWZpyHuAMq6uYWRjkBXFad11vE2LHhQ7'))
        self.assertIsNone(self.resolver.classify('ipfs://'))
        self.assertIsNone(self.resolver.classify('ipfs://bafYBEI'))

    def test_cid_v0_must_be_full_length(self):
        self.assertIsNone(self.resolver.classify('ipfs://Qm'))
        self.assertIsNone(self.resolver.classify(f'ipfs://{CID_V0[:-1]}'))
        self.assertIsNone(self.resolver.classify(f'ipfs://{CID_V0}G'))
        self.assertFalse(is_valid_cid('Qm'))

    def test_http_passthrough(self):
        self.assertEqual(self.resolver.classify('https://host/x.png'), 'https://host/x.png')
        self.assertEqual(self.resolver.classify('http://host/meta.json'), 'http://host/meta.json')

    def test_other_schemes(self):
        self.assertIsNone(self.resolver.classify('ftp://host/x'))
        self.assertIsNone(self.resolver.classify('ar://abc'))
        self.assertIsNone(self.resolver.classify(''))
        self.assertIsNone(self.resolver.classify('just some text'))

    def test_is_valid_cid(self):
        self.assertTrue(is_valid_cid(CID_V1))
        self.assertTrue(is_valid_cid(CID_V0))
        self.assertFalse(is_valid_cid('Zm' + CID_V0[2:]))


class TestResolve(unittest.TestCase):
    URL = GATEWAY + CID_V0

    def test_image_response(self):
        png = FakeResponse(content_type='image/png', body=PNG)
        r, _ = resolver({self.URL: png})
        self.assertEqual(r.resolve(self.URL), ResolvedContent(image_url=self.URL))
        self.assertTrue(png.closed)

    def test_metadata_response(self):
        r, _ = resolver({self.URL: FakeResponse(content_type='application/json; charset=utf-8', body={
            'name': 'PFT Profile #1',
            'description': 'A profile',
            'image': f'ipfs://{CID_V1}',
        })})
        self.assertEqual(r.resolve(self.URL), ResolvedContent(
            image_url=GATEWAY + CID_V1, name='PFT Profile #1', description='A profile'))

    def test_metadata_strings_kept_verbatim(self):
        r, _ = resolver({self.URL: FakeResponse(content_type='application/json', body={
            'name': ' PFT Profile #1 ', 'description': 'line one\n', 'image': '   ',
        })})
        self.assertEqual(r.resolve(self.URL), ResolvedContent(name=' PFT Profile #1 ', description='line one\n'))

    def test_metadata_fields_of_wrong_shape_are_absent(self):
        r, _ = resolver({self.URL: FakeResponse(content_type='application/json', body={
            'name': 12, 'description': ['x'], 'image': 'ftp://nope',
        })})
        self.assertEqual(r.resolve(self.URL), ResolvedContent())

    def test_metadata_not_an_object(self):
        r, _ = resolver({self.URL: FakeResponse(content_type='application/json', body=[1, 2])})
        self.assertEqual(r.resolve(self.URL), ResolvedContent())

    def test_metadata_parse_failure(self):
        r, _ = resolver({self.URL: FakeResponse(content_type='application/json', body=b'{not json')})
        self.assertEqual(r.resolve(self.URL), ResolvedContent())

    def test_deeply_nested_metadata_is_parse_failure(self):
        body = b'{"name": ' + b'[' * 200000 + b']' * 200000 + b'}'
        r, _ = resolver({self.URL: FakeResponse(content_type='application/json', body=body)})
        self.assertEqual(r.resolve(self.URL), ResolvedContent())

    def test_single_redirect_followed(self):
        target = 'https://cdn.test/img.png'
        r, session = resolver({
            self.URL: FakeResponse(status=302, location=target),
            target: FakeResponse(content_type='image/png'),
        })
        self.assertEqual(r.resolve(self.URL).image_url, self.URL)
        self.assertEqual([u for u, _ in session.requested], [self.URL, target])
        self.assertFalse(session.requested[0][1]['allow_redirects'])
        self.assertEqual(session.requested[0][1]['timeout'], 3)

    def test_relative_redirect(self):
        r, session = resolver({
            self.URL: FakeResponse(status=301, location='/ipfs/other'),
            'https://gw.test/ipfs/other': FakeResponse(content_type='image/gif'),
        })
        self.assertEqual(r.resolve(self.URL).image_url, self.URL)

    def test_second_redirect_is_failure(self):
        r, session = resolver({
            self.URL: FakeResponse(status=302, location='https://a.test/'),
            'https://a.test/': FakeResponse(status=302, location='https://b.test/'),
        })
        self.assertEqual(r.resolve(self.URL), ResolvedContent())
        self.assertEqual(len(session.requested), 2)
        self.assertTrue(all(resp.closed for resp in session.routes.values()))

    def test_timeout(self):
        r, _ = resolver({self.URL: requests.exceptions.Timeout('slow gateway')})
        self.assertEqual(r.resolve(self.URL), ResolvedContent())

    def test_http_error(self):
        resp = FakeResponse(status=504, content_type='text/html')
        r, _ = resolver({self.URL: resp})
        self.assertEqual(r.resolve(self.URL), ResolvedContent())
        self.assertTrue(resp.closed)

    def test_unsupported_content_type(self):
        resp = FakeResponse(content_type='text/html', body=b'<html></html>')
        r, _ = resolver({self.URL: resp})
        self.assertEqual(r.resolve(self.URL), ResolvedContent())
        self.assertTrue(resp.closed)

    def test_metadata_response_is_closed(self):
        resp = FakeResponse(content_type='application/json', body={'name': 'Closed'})
        r, _ = resolver({self.URL: resp})
        self.assertEqual(r.resolve(self.URL).name, 'Closed')
        self.assertTrue(resp.closed)

    def test_sniffs_image_without_content_type(self):
        r, _ = resolver({self.URL: FakeResponse(body=PNG)})
        self.assertEqual(r.resolve(self.URL).image_url, self.URL)

    def test_sniffs_json_behind_octet_stream(self):
        r, _ = resolver({self.URL: FakeResponse(content_type='application/octet-stream', body={'name': 'Sniffed'})})
        self.assertEqual(r.resolve(self.URL).name, 'Sniffed')

    def test_unsniffable_generic_body(self):
        r, _ = resolver({self.URL: FakeResponse(content_type='text/plain', body=b'hello')})
        self.assertEqual(r.resolve(self.URL), ResolvedContent())


class ConcurrencyTrackingSession:

    def __init__(self, delay=0.02):
        self.delay = delay
        self.lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls = 0

    def get(self, url, **kwargs):
        with self.lock:
            self.in_flight += 1
            self.calls += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delay)
            return FakeResponse(content_type='image/png', url=url)
        finally:
            with self.lock:
                self.in_flight -= 1


class TestResolveRecords(unittest.TestCase):

    def _records(self, n):
        return [NFTRecord(id=f'{i:064X}', issuer='r', seq=i, uri=f'https://img.test/{i}.png') for i in range(n)]

    def test_batches_bound_concurrency(self):
        session = ConcurrencyTrackingSession()
        r = ContentResolver(gateway=GATEWAY, batch_size=5, session=session)
        records = self._records(12) + [NFTRecord(id='F' * 64, issuer='r', seq=99, uri='ftp://nope')]

        resolved = r.resolve_records(records)

        self.assertEqual(resolved, 12)
        self.assertEqual(r.stats['batches'], 3)
        self.assertEqual(r.stats['unresolvable'], 1)
        self.assertEqual(session.calls, 12)
        self.assertLessEqual(session.max_in_flight, 5)
        self.assertEqual([rec.image_url for rec in records[:12]], [f'https://img.test/{i}.png' for i in range(12)])
        self.assertIsNone(records[12].image_url)

    def test_failures_only_affect_their_record(self):
        ok_url = 'https://img.test/ok.png'
        bad_url = 'https://img.test/bad.png'
        r, _ = resolver({
            ok_url: FakeResponse(content_type='image/png'),
            bad_url: requests.exceptions.ConnectionError('reset'),
        }, batch_size=5)
        ok = NFTRecord(id='A' * 64, issuer='r', seq=1, uri=ok_url)
        bad = NFTRecord(id='B' * 64, issuer='r', seq=2, uri=bad_url)

        r.resolve_records([bad, ok])

        self.assertIsNone(bad.image_url)
        self.assertEqual(ok.image_url, ok_url)
        self.assertEqual(r.stats['failed'], 1)
        self.assertEqual(r.stats['resolved'], 1)

    def test_deeply_nested_metadata_only_fails_its_record(self):
        ok_url = 'https://img.test/ok.png'
        bad_url = 'https://meta.test/nested.json'
        nested = b'{"name": ' + b'[' * 200000 + b']' * 200000 + b'}'
        r, _ = resolver({
            ok_url: FakeResponse(content_type='image/png'),
            bad_url: FakeResponse(content_type='application/json', body=nested),
        }, batch_size=5)
        ok = NFTRecord(id='A' * 64, issuer='r', seq=1, uri=ok_url)
        bad = NFTRecord(id='B' * 64, issuer='r', seq=2, uri=bad_url)

        r.resolve_records([bad, ok])

        self.assertIsNone(bad.image_url)
        self.assertIsNone(bad.name)
        self.assertEqual(ok.image_url, ok_url)
        self.assertEqual(r.stats['failed'], 1)
        self.assertEqual(r.stats['resolved'], 1)


if __name__ == '__main__':
    unittest.main()
