from wordchain.services.game.dictionary import WordList, load_word_list


def test_bundled_word_list_loads():
    words = load_word_list()
    assert len(words) > 100
    assert 'Cat' in words
    assert 'guinea pig' in words


def test_custom_word_list(tmp_path):
    path = tmp_path / 'words.txt'
    path.write_text('Apple\n\nbanana\n', encoding='utf-8')
    words = load_word_list(str(path))
    assert len(words) == 2
    assert words.check('APPLE', 'a') == (True, '')


def test_check_messages():
    words = WordList(['tiger'])
    assert words.check('') == (False, 'Word required')
    assert words.check('lion') == (False, 'Word not in list')
    assert words.check('tiger', 'c') == (False, 'Word must start with "C"')
    assert words.check('tiger') == (True, '')
