"""Static participant pages served by the API server.

Each page is plain HTML plus a small script that talks to the JSON routes.
The quiz reference is read from ``location.pathname`` so the markup can stay
constant.
"""

from __future__ import annotations

_HEAD = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>__TITLE__</title>
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <style>
      :root { font-family: 'Inter', system-ui, sans-serif; background: #0b1120; color: #f5f7ff; }
      body { margin: 0 auto; padding: 1.5rem; max-width: 48rem; display: flex; flex-direction: column; gap: 1rem; }
      .card { background: #111a30; border-radius: 0.75rem; padding: 1.5rem; box-shadow: 0 0.5rem 1.5rem rgba(0, 0, 0, 0.4); }
      .hidden { display: none; }
      .muted { color: #94a3b8; font-size: 0.95rem; }
      input, select { border: 1px solid #334155; border-radius: 0.5rem; padding: 0.75rem; font-size: 1rem; background: #0b1120; color: #f5f7ff; }
      .primary-button { border: none; border-radius: 0.75rem; padding: 0.85rem 1.5rem; font-size: 1rem; background: #1f9aa5; color: #fff; cursor: pointer; transition: transform 120ms ease, background 120ms ease; }
      .primary-button:hover { transform: translateY(-2px); background: #16808a; }
      .primary-button:disabled { opacity: 0.6; cursor: not-allowed; }
      .options-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(180px, 1fr)); gap: 0.75rem; }
      .option-button { border: none; border-radius: 0.75rem; padding: 1rem; font-size: 1rem; background: #1f9aa5; color: #fff; cursor: pointer; text-align: left; }
      .option-button:hover { background: #16808a; }
      .option-button:disabled { opacity: 0.5; cursor: not-allowed; }
      #question-container { min-height: 6rem; font-size: 1.1rem; line-height: 1.6; }
      #timer-label { font-size: 0.95rem; color: #facc15; }
      .timer-track { width: 100%; height: 0.6rem; background: rgba(250, 204, 21, 0.25); border-radius: 999px; overflow: hidden; margin-bottom: 1rem; }
      #timer-fill { width: 100%; height: 100%; background: #facc15; transform-origin: left center; transition: transform 200ms linear; }
      table { width: 100%; border-collapse: collapse; }
      th, td { padding: 0.5rem; text-align: left; border-bottom: 1px solid #1e293b; }
      tr.you { background: rgba(31, 154, 165, 0.25); }
      .insights { display: grid; grid-template-columns: repeat(auto-fit, minmax(120px, 1fr)); gap: 0.75rem; }
      #toast { position: fixed; bottom: 1.5rem; left: 50%; transform: translateX(-50%); background: #b91c1c; color: #fff; padding: 0.75rem 1.25rem; border-radius: 0.75rem; }
    </style>
    <script>
      window.MathJax = { tex: { inlineMath: [['$','$']], displayMath: [['$$','$$']] }, svg: { fontCache: 'global' } };
    </script>
    <script defer src="https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"></script>
  </head>
  <body>
"""

_COMMON_SCRIPT = """
    <div id="toast" class="hidden"></div>
    <script>
      const quizRef = decodeURIComponent((location.pathname.split('/')[2] || ''));
      let toastHandle = null;

      function setVisibility(element, isVisible) {
        if (!element) return;
        element.classList.toggle('hidden', !isVisible);
      }

      function showToast(message) {
        const toast = document.getElementById('toast');
        toast.textContent = message;
        setVisibility(toast, true);
        if (toastHandle) clearTimeout(toastHandle);
        toastHandle = setTimeout(() => setVisibility(toast, false), 4000);
      }

      async function callApi(url, options = {}) {
        const response = await fetch(url, options);
        const body = await response.json().catch(() => ({}));
        if (!response.ok) {
          const detail = typeof body.detail === 'string' ? body.detail : 'Something went wrong. Please try again.';
          const error = new Error(detail);
          error.status = response.status;
          throw error;
        }
        return body;
      }

      function postJson(url, payload) {
        return callApi(url, {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify(payload || {})
        });
      }

      function formatDuration(ms) {
        const totalSeconds = Math.floor(ms / 1000);
        return `${Math.floor(totalSeconds / 60)}m ${totalSeconds % 60}s`;
      }
    </script>
"""

_TAIL = """  </body>
</html>
"""


def _page(title: str, body: str, script: str) -> str:
    return _HEAD.replace("__TITLE__", title) + body + _COMMON_SCRIPT + script + _TAIL


HOME_PAGE_HTML = _page(
    "SwiftQuiz",
    """
    <section class="card">
      <h1>SwiftQuiz</h1>
      <p class="muted">Enter the 6-character code you were given.</p>
      <form id="code-form">
        <input id="code-input" maxlength="6" autocomplete="off" placeholder="ABC123" />
        <button class="primary-button" type="submit">Go</button>
      </form>
    </section>
""",
    """
    <script>
      document.getElementById('code-form').addEventListener('submit', event => {
        event.preventDefault();
        const code = document.getElementById('code-input').value.trim().toUpperCase();
        if (!/^[A-Z0-9]{6}$/.test(code)) {
          showToast('Quiz codes are 6 letters or digits.');
          return;
        }
        location.href = `/q/${encodeURIComponent(code)}`;
      });
    </script>
""",
)

GATE_PAGE_HTML = _page(
    "SwiftQuiz",
    """
    <section class="card" id="gate-card">
      <h1 id="quiz-title">Loading quiz...</h1>
      <p id="quiz-description" class="muted"></p>
      <p id="quiz-meta" class="muted"></p>
      <form id="name-form" class="hidden">
        <input id="name-input" maxlength="50" autocomplete="name" placeholder="Your name" />
        <button id="start-button" class="primary-button" type="submit">Start quiz</button>
      </form>
    </section>
""",
    """
    <script>
      const nameForm = document.getElementById('name-form');
      const startButton = document.getElementById('start-button');

      async function loadQuiz() {
        try {
          const quiz = await callApi(`/api/quizzes/${encodeURIComponent(quizRef)}`);
          document.getElementById('quiz-title').textContent = quiz.title;
          document.getElementById('quiz-description').textContent = quiz.description || '';
          const limit = quiz.time_per_question_sec ? `${quiz.time_per_question_sec}s per question` : 'No time limit';
          document.getElementById('quiz-meta').textContent = `${quiz.question_count} question(s) | ${limit}`;
          setVisibility(nameForm, true);
        } catch (error) {
          document.getElementById('quiz-title').textContent = 'Quiz unavailable';
          document.getElementById('quiz-description').textContent = error.message;
        }
      }

      nameForm.addEventListener('submit', async event => {
        event.preventDefault();
        const name = document.getElementById('name-input').value.trim();
        if (!name) {
          showToast('Please enter your name to continue.');
          return;
        }
        startButton.disabled = true;
        try {
          await postJson(`/api/quizzes/${encodeURIComponent(quizRef)}/attempts`, { name });
          location.href = `/q/${encodeURIComponent(quizRef)}/quiz`;
        } catch (error) {
          showToast(error.message);
          startButton.disabled = false;
        }
      });

      loadQuiz();
    </script>
""",
)

RUNNER_PAGE_HTML = _page(
    "SwiftQuiz",
    """
    <section class="card" id="quiz-card">
      <p id="progress" class="muted">Loading quiz...</p>
      <div id="timer-wrapper" class="hidden">
        <span id="timer-label"></span>
        <div class="timer-track"><div id="timer-fill"></div></div>
      </div>
      <div id="question-container"></div>
      <div id="options-container" class="options-grid"></div>
    </section>
    <section class="card hidden" id="finish-card">
      <p>Your answers are saved but the result could not be submitted.</p>
      <button id="finish-button" class="primary-button">Submit results</button>
    </section>
    <section class="card hidden" id="unavailable-card">
      <p id="unavailable-message"></p>
      <a id="gate-link" class="muted" href="#">Back to the quiz start</a>
    </section>
""",
    """
    <script>
      const progressEl = document.getElementById('progress');
      const questionContainer = document.getElementById('question-container');
      const optionsContainer = document.getElementById('options-container');
      const timerWrapper = document.getElementById('timer-wrapper');
      const timerLabel = document.getElementById('timer-label');
      const timerFill = document.getElementById('timer-fill');
      const leaderboardUrl = `/q/${encodeURIComponent(quizRef)}/leaderboard`;

      let currentQuestionId = null;
      let busy = false;
      let pollHandle = null;
      let remainingSeconds = null;
      let timeLimitSeconds = null;
      let expirePosted = false;

      document.getElementById('gate-link').href = `/q/${encodeURIComponent(quizRef)}`;

      async function typesetMath() {
        await new Promise(resolve => setTimeout(resolve, 100));
        for (let i = 0; i < 15; i++) {
          if (window.MathJax && window.MathJax.typesetPromise) {
            try {
              await window.MathJax.typesetPromise([questionContainer, optionsContainer]);
              return;
            } catch (err) {
              console.warn('MathJax typeset attempt', i + 1, 'error:', err);
            }
          }
          await new Promise(resolve => setTimeout(resolve, 150));
        }
      }

      function renderTimer() {
        if (timeLimitSeconds === null || remainingSeconds === null) {
          setVisibility(timerWrapper, false);
          return;
        }
        setVisibility(timerWrapper, true);
        timerLabel.textContent = remainingSeconds > 0 ? `${remainingSeconds}s remaining` : 'Time is up';
        timerFill.style.transform = `scaleX(${Math.max(0, remainingSeconds / timeLimitSeconds)})`;
      }

      function renderQuestion(question) {
        questionContainer.innerHTML = question.html;
        optionsContainer.innerHTML = '';
        question.options.forEach((option, index) => {
          const button = document.createElement('button');
          button.className = 'option-button';
          button.innerHTML = `${String.fromCharCode(65 + index)}. ${option.html}`;
          button.addEventListener('click', () => submitAnswer(option.id));
          optionsContainer.appendChild(button);
        });
        typesetMath();
      }

      function setOptionsEnabled(enabled) {
        optionsContainer.querySelectorAll('.option-button').forEach(btn => (btn.disabled = !enabled));
      }

      function stopPolling() {
        if (pollHandle) {
          clearInterval(pollHandle);
          pollHandle = null;
        }
      }

      function applySnapshot(snapshot) {
        if (snapshot.state === 'finished') {
          stopPolling();
          location.href = leaderboardUrl;
          return;
        }
        if (snapshot.state === 'finishing') {
          setVisibility(document.getElementById('quiz-card'), false);
          setVisibility(document.getElementById('finish-card'), true);
          return;
        }
        if (snapshot.state !== 'presenting' || !snapshot.question) {
          return;
        }
        progressEl.textContent = `${snapshot.quiz_title} | Question ${snapshot.question_index + 1} of ${snapshot.question_count}`;
        if (snapshot.question.id !== currentQuestionId) {
          currentQuestionId = snapshot.question.id;
          expirePosted = false;
          renderQuestion(snapshot.question);
        }
        timeLimitSeconds = snapshot.time_limit_seconds;
        remainingSeconds = snapshot.remaining_seconds;
        renderTimer();
        setOptionsEnabled(!busy);
        if (remainingSeconds === 0 && !expirePosted) {
          expireQuestion();
        }
      }

      function showUnavailable(message) {
        stopPolling();
        setVisibility(document.getElementById('quiz-card'), false);
        setVisibility(document.getElementById('unavailable-card'), true);
        document.getElementById('unavailable-message').textContent = message;
      }

      async function runAction(action) {
        if (busy) return;
        busy = true;
        setOptionsEnabled(false);
        try {
          applySnapshot(await action());
        } catch (error) {
          if (error.status === 404) {
            showUnavailable(error.message);
          } else {
            showToast(error.message);
          }
        } finally {
          busy = false;
          setOptionsEnabled(true);
        }
      }

      function submitAnswer(optionId) {
        return runAction(() => postJson('/api/runner/answer', { option_id: optionId }));
      }

      function expireQuestion() {
        expirePosted = true;
        return runAction(() => postJson('/api/runner/expire'));
      }

      async function refresh() {
        if (busy) return;
        try {
          applySnapshot(await callApi('/api/runner'));
        } catch (error) {
          if (error.status === 404) {
            showUnavailable(error.message);
          } else {
            showToast(error.message);
          }
        }
      }

      function tick() {
        if (remainingSeconds !== null && remainingSeconds > 0) {
          remainingSeconds -= 1;
          renderTimer();
          if (remainingSeconds === 0 && !expirePosted) {
            expireQuestion();
            return;
          }
        }
        refresh();
      }

      document.getElementById('finish-button').addEventListener('click', () =>
        runAction(() => postJson('/api/runner/finish'))
      );

      refresh();
      pollHandle = setInterval(tick, 1000);
    </script>
""",
)

LEADERBOARD_PAGE_HTML = _page(
    "SwiftQuiz Leaderboard",
    """
    <section class="card">
      <h1 id="quiz-title">Leaderboard</h1>
      <p id="your-rank" class="muted"></p>
      <label class="muted">Sort
        <select id="sort-select">
          <option value="score">Score</option>
          <option value="time">Time</option>
          <option value="accuracy">Accuracy</option>
        </select>
      </label>
      <label class="muted">Period
        <select id="period-select">
          <option value="all">All time</option>
          <option value="today">Today</option>
          <option value="week">This week</option>
          <option value="month">This month</option>
        </select>
      </label>
      <button id="refresh-button" class="primary-button">Refresh</button>
    </section>
    <section class="card insights" id="insights"></section>
    <section class="card">
      <p id="empty-message" class="muted hidden">No one has finished this quiz yet.</p>
      <table id="leaderboard-table">
        <thead><tr><th>#</th><th>Name</th><th>Score</th><th>Accuracy</th><th>Time</th></tr></thead>
        <tbody id="leaderboard-body"></tbody>
      </table>
    </section>
""",
    """
    <script>
      const sortSelect = document.getElementById('sort-select');
      const periodSelect = document.getElementById('period-select');

      function renderInsights(insights) {
        const container = document.getElementById('insights');
        const average = value => (value === null ? '-' : value.toFixed(1));
        container.innerHTML = '';
        [
          ['Participants', insights.participant_count],
          ['Average score', average(insights.average_score)],
          ['Average accuracy', insights.average_accuracy === null ? '-' : `${average(insights.average_accuracy)}%`],
          ['Average time', insights.average_time_ms === null ? '-' : formatDuration(insights.average_time_ms)]
        ].forEach(([label, value]) => {
          const cell = document.createElement('div');
          cell.innerHTML = `<div class="muted"></div><strong></strong>`;
          cell.children[0].textContent = label;
          cell.children[1].textContent = value;
          container.appendChild(cell);
        });
      }

      function renderRows(payload) {
        const body = document.getElementById('leaderboard-body');
        body.innerHTML = '';
        payload.rows.forEach(row => {
          const tr = document.createElement('tr');
          if (row.is_you) tr.className = 'you';
          [row.rank, row.name, `${row.total_correct}/${payload.question_count}`, `${row.accuracy}%`, formatDuration(row.total_time_ms)]
            .forEach(value => {
              const td = document.createElement('td');
              td.textContent = value;
              tr.appendChild(td);
            });
          body.appendChild(tr);
        });
        setVisibility(document.getElementById('empty-message'), payload.rows.length === 0);
        document.getElementById('your-rank').textContent = payload.your_rank ? `Your rank: #${payload.your_rank}` : '';
      }

      async function loadLeaderboard() {
        const params = new URLSearchParams({
          sort: sortSelect.value,
          period: periodSelect.value,
          utc_offset: String(-new Date().getTimezoneOffset()),
        });
        try {
          const payload = await callApi(`/api/quizzes/${encodeURIComponent(quizRef)}/leaderboard?${params}`);
          document.getElementById('quiz-title').textContent = `${payload.quiz_title} | Leaderboard`;
          renderInsights(payload.insights);
          renderRows(payload);
        } catch (error) {
          showToast(error.message);
        }
      }

      sortSelect.addEventListener('change', loadLeaderboard);
      periodSelect.addEventListener('change', loadLeaderboard);
      document.getElementById('refresh-button').addEventListener('click', loadLeaderboard);
      loadLeaderboard();
    </script>
""",
)
